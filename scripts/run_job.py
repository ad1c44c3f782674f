"""Run one resume-tailoring job end to end from local files.

Profiles are read from <profiles-dir>/<user_id>.json and job records are
written under JOB_STORE_DIR (or --store-dir). Progress events are printed as
they happen; the assembled resume is printed as JSON.

Usage:
  python -m scripts.run_job jd.txt --user demo --profiles-dir profiles --strategy bm25
  python -m scripts.run_job jd.txt --user demo --profiles-dir profiles --strategy openai
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from argparse import ArgumentParser, FileType
from pathlib import Path

from core.events import Event, InMemoryEventBus
from core.job_queue import JobQueue
from core.job_store import JsonFileJobStore
from core.models import JobSubmission
from core.obs import JsonRepoLogger
from core.pipeline_orchestrator import PipelineOrchestrator
from core.profile_store import JsonFileProfileRepository
from core.retrieval import InMemoryBulletRetriever
from core.settings import get_app_settings, get_pipeline_settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _print_event(event: Event) -> None:
    payload = event.payload
    if "progress" in payload:
        print(f"[{payload['progress']:>3}%] {payload['stage']}")
    elif "error" in payload:
        print(f"[fail] {payload['error']}")


async def _run(args) -> int:
    settings = get_pipeline_settings()
    app = get_app_settings()
    store = JsonFileJobStore(root=Path(args.store_dir or settings.job_store_dir))
    profiles = JsonFileProfileRepository(root=Path(args.profiles_dir))

    ai = None
    strategy = args.strategy or settings.default_strategy
    if strategy == "openai":
        from agents.llm_provider import build_ai_provider

        ai = build_ai_provider(provider=args.provider)

    orchestrator = PipelineOrchestrator(
        store=store,
        retriever=InMemoryBulletRetriever(profiles=profiles),
        profiles=profiles,
        ai=ai,
        bus=InMemoryEventBus(),
        settings=settings,
        obs=JsonRepoLogger(service="pipeline", env=app.app_env, log_dir=app.log_dir),
    )
    queue = JobQueue.from_settings(orchestrator, store)
    queue.start()
    try:
        handle = await queue.submit(
            JobSubmission(
                job_id=args.job_id or str(uuid.uuid4()),
                user_id=args.user,
                job_description=args.jd_file.read(),
                strategy=strategy,
            )
        )
        queue.on_progress(handle, _print_event)
        try:
            resume = await queue.wait(handle)
        except Exception as exc:
            logger.error("run_job.failed job=%s error=%s", handle.job_id, exc)
            return 1
        print(json.dumps(resume.to_wire(), indent=2, ensure_ascii=False))
        return 0
    finally:
        await queue.stop()


def main() -> int:
    parser = ArgumentParser(description="Tailor a resume for one job description.")
    parser.add_argument("jd_file", type=FileType("r"), help="Path to job description text file.")
    parser.add_argument("--user", required=True, help="User id (profile file stem).")
    parser.add_argument("--profiles-dir", default="profiles", help="Directory of <user>.json profiles.")
    parser.add_argument("--store-dir", default=None, help="Job record directory (default JOB_STORE_DIR).")
    parser.add_argument("--strategy", choices=("openai", "bm25"), default=None)
    parser.add_argument("--provider", default=None, help="LLM provider override (openai, claude, gemini).")
    parser.add_argument("--job-id", default=None, help="Idempotency key; defaults to a new uuid.")
    args = parser.parse_args()
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
