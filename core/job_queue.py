"""In-process task channel for pipeline jobs.

``submit(job) -> handle``, ``on_progress(handle, callback)`` and
``wait(handle) -> resume`` over a bounded pool of asyncio worker tasks.
Each submitted job is delivered to exactly one worker attempt; there is no
retry and no cancellation of a running job. Handles are tracked only while
their job is queued or running.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from core.errors import PipelineError
from core.events import Event
from core.job_store import JobStore
from core.models import JobRecord, JobStatus, JobSubmission, ResumeDocument
from core.pipeline_events import JOB_SUBMITTED
from core.pipeline_orchestrator import PipelineOrchestrator, ProgressListener

logger = logging.getLogger(__name__)


class JobAdmissionError(PipelineError):
    """Raised when a submission is rejected (too many in-flight jobs, queue stopped)."""


@dataclass(eq=False)
class JobHandle:
    job_id: str
    future: "asyncio.Future[ResumeDocument]"
    callbacks: List[ProgressListener] = field(default_factory=list)

    @property
    def done(self) -> bool:
        return self.future.done()

    def _notify(self, event: Event) -> None:
        for callback in list(self.callbacks):
            try:
                callback(event)
            except Exception:
                logger.exception("job_queue.callback_error job=%s event=%s", self.job_id, event.type)


@dataclass
class JobQueue:
    """Bounded worker pool with an admission ceiling on in-flight jobs."""

    orchestrator: PipelineOrchestrator
    store: JobStore
    concurrency: int = 10
    max_active_jobs: int = 10
    _queue: Optional["asyncio.Queue[JobSubmission]"] = field(default=None, init=False, repr=False)
    _workers: List["asyncio.Task[None]"] = field(default_factory=list, init=False, repr=False)
    _handles: Dict[str, JobHandle] = field(default_factory=dict, init=False, repr=False)

    @classmethod
    def from_settings(cls, orchestrator: PipelineOrchestrator, store: JobStore) -> "JobQueue":
        s = orchestrator.settings
        return cls(
            orchestrator=orchestrator,
            store=store,
            concurrency=s.worker_concurrency,
            max_active_jobs=s.max_active_jobs,
        )

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        if self._workers:
            return
        self._queue = asyncio.Queue()
        self._workers = [
            asyncio.create_task(self._worker(i, self._queue), name=f"pipeline-worker-{i}")
            for i in range(max(1, self.concurrency))
        ]
        logger.info("job_queue.started workers=%d max_active=%d", len(self._workers), self.max_active_jobs)

    async def stop(self, drain: bool = True) -> None:
        """Stop the workers; with ``drain`` first wait for queued jobs to finish."""
        if not self._workers:
            return
        if drain and self._queue is not None:
            await self._queue.join()
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("job_queue.stopped")

    async def submit(self, submission: JobSubmission) -> JobHandle:
        """Admit a job and enqueue it; a known job_id returns the existing handle."""
        existing = self._handles.get(submission.job_id)
        if existing is not None:
            logger.info("job_queue.duplicate job=%s", submission.job_id)
            return existing
        if not self._workers or self._queue is None:
            raise JobAdmissionError("Job queue is not running; call start() first")

        loop = asyncio.get_running_loop()
        stored = self.store.load(submission.job_id)
        if stored is not None and not stored.is_active:
            # Already processed in an earlier run: answer from the record, never re-run.
            handle = JobHandle(job_id=submission.job_id, future=loop.create_future())
            _resolve_from_record(handle, stored)
            return handle

        active = self.store.count_active()
        if active >= self.max_active_jobs:
            logger.warning("job_queue.rejected job=%s active=%d", submission.job_id, active)
            raise JobAdmissionError(
                f"Too many active jobs ({active}/{self.max_active_jobs}); try again later"
            )

        self.store.create(
            JobRecord(
                job_id=submission.job_id,
                user_id=submission.user_id,
                job_description=submission.job_description,
                strategy=submission.strategy or self.orchestrator.settings.default_strategy,
            )
        )
        handle = JobHandle(job_id=submission.job_id, future=loop.create_future())
        self._handles[submission.job_id] = handle
        self.orchestrator.bus.publish(
            Event(
                type=JOB_SUBMITTED,
                payload=submission.to_wire(),
                correlation_id=submission.job_id,
            )
        )
        self._queue.put_nowait(submission)
        logger.info("job_queue.submitted job=%s", submission.job_id)
        return handle

    def on_progress(self, handle: JobHandle, callback: ProgressListener) -> None:
        handle.callbacks.append(callback)

    async def wait(self, handle: JobHandle) -> ResumeDocument:
        """Wait for the job; re-raises the job's error if it failed."""
        return await asyncio.shield(handle.future)

    def handle_for(self, job_id: str) -> Optional[JobHandle]:
        """Handle of a queued or running job; finished jobs are answered from the store."""
        return self._handles.get(job_id)

    async def _worker(self, index: int, queue: "asyncio.Queue[JobSubmission]") -> None:
        while True:
            submission = await queue.get()
            handle = self._handles[submission.job_id]
            try:
                logger.debug("job_queue.dequeued worker=%d job=%s", index, submission.job_id)
                resume = await self.orchestrator.run(submission, listener=handle._notify)
            except Exception as exc:
                if not handle.future.done():
                    handle.future.set_exception(exc)
            else:
                if not handle.future.done():
                    handle.future.set_result(resume)
            finally:
                self._handles.pop(submission.job_id, None)
                queue.task_done()


def _resolve_from_record(handle: JobHandle, record: JobRecord) -> None:
    if record.status == JobStatus.COMPLETED and record.result_resume is not None:
        handle.future.set_result(record.result_resume)
    else:
        handle.future.set_exception(
            PipelineError(record.error_message or f"Job {record.job_id} {record.status.value}")
        )
