"""Per-job pipeline orchestrator.

Runs one resume-tailoring job through its stages:

full ("openai"):  PARSING_JD(10) → RETRIEVING_BULLETS(25) → SELECTING_BULLETS(40)
                  → REWRITING_BULLETS(55) → VERIFYING(75) → ASSEMBLING(90) → COMPLETED(100)
lexical ("bm25"): PARSING_JD(10) → RETRIEVING_BULLETS(20) → SELECTING_BULLETS(50)
                  → ASSEMBLING(85) → COMPLETED(100)

FAILED is reachable from every non-terminal stage. On entering a stage the
job record is updated and a ``job.progress`` event is published, then the
stage runs. Any stage error marks the job FAILED (progress 0) and is
re-raised; there is no retry.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional

from core.ai_provider import AIProvider
from core.errors import PipelineError
from core.events import Event, EventBus, InMemoryEventBus
from core.job_store import JobStore
from core.models import (
    BulletAuditRow,
    BulletCandidate,
    BulletInput,
    ContentSelection,
    JobRecord,
    JobStage,
    JobStatus,
    JobSubmission,
    ParsedJD,
    ProfileData,
    ResumeDocument,
    RewrittenBullet,
    SelectedBullet,
    Strategy,
    VerifiedBullet,
    utcnow,
)
from core.obs import Logger, NullLogger, Span, bind_log_context
from core.pipeline_events import (
    BULLET_REVERTED,
    BULLET_REWRITE_FAILED,
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_PROGRESS,
)
from core.profile_store import ProfileRepository
from core.resume_assembler import assemble, rank_skills
from core.retrieval import Retriever
from core.settings import PipelineSettings, get_pipeline_settings
from core.state_machine import SimpleStateMachine
from core.verification import verify_bullets
from lexical.bullet_selector import select
from lexical.keyword_extractor import extract, search_terms

logger = logging.getLogger(__name__)

REWRITE_FAILED_FLAG = "rewrite_failed"

FULL_PROGRESS: Dict[JobStage, int] = {
    JobStage.PARSING_JD: 10,
    JobStage.RETRIEVING_BULLETS: 25,
    JobStage.SELECTING_BULLETS: 40,
    JobStage.REWRITING_BULLETS: 55,
    JobStage.VERIFYING: 75,
    JobStage.ASSEMBLING: 90,
    JobStage.COMPLETED: 100,
}

LEXICAL_PROGRESS: Dict[JobStage, int] = {
    JobStage.PARSING_JD: 10,
    JobStage.RETRIEVING_BULLETS: 20,
    JobStage.SELECTING_BULLETS: 50,
    JobStage.ASSEMBLING: 85,
    JobStage.COMPLETED: 100,
}

_STAGE_GRAPH: tuple[tuple[JobStage, JobStage], ...] = (
    (JobStage.QUEUED, JobStage.PARSING_JD),
    (JobStage.PARSING_JD, JobStage.RETRIEVING_BULLETS),
    (JobStage.RETRIEVING_BULLETS, JobStage.SELECTING_BULLETS),
    (JobStage.SELECTING_BULLETS, JobStage.REWRITING_BULLETS),
    # rewrite skipped (SKIP_REWRITE_BULLETS)
    (JobStage.SELECTING_BULLETS, JobStage.VERIFYING),
    # lexical strategy
    (JobStage.SELECTING_BULLETS, JobStage.ASSEMBLING),
    (JobStage.REWRITING_BULLETS, JobStage.VERIFYING),
    (JobStage.VERIFYING, JobStage.ASSEMBLING),
    (JobStage.ASSEMBLING, JobStage.COMPLETED),
)

ProgressListener = Callable[[Event], None]


def build_stage_machine() -> SimpleStateMachine:
    """FSM over JobStage names; the trigger for a transition is the destination's name."""
    fsm = SimpleStateMachine()
    for stage in JobStage:
        fsm.add_state(stage.name)
    for source, dest in _STAGE_GRAPH:
        fsm.add_transition(dest.name, source.name, dest.name)
    for stage in JobStage:
        if stage not in (JobStage.COMPLETED, JobStage.FAILED):
            fsm.add_transition(JobStage.FAILED.name, stage.name, JobStage.FAILED.name)
    fsm.set_state(JobStage.QUEUED.name)
    return fsm


def candidates_from_selection(
    profile: ProfileData, selection: ContentSelection
) -> List[BulletCandidate]:
    """Turn an AI content selection into scored candidates.

    Scores are rank-derived: earlier picks score higher, so the selector's
    per-parent cap keeps the model's preferred bullets.
    Parents or bullets the profile does not hold are skipped.
    """
    experiences = {e.id: e for e in profile.experiences}
    projects = {p.id: p for p in profile.projects}
    picked: List[tuple] = []
    for item in selection.experiences:
        exp = experiences.get(item.id)
        if exp is None:
            continue
        bullets = {b.id: b for b in exp.bullets}
        for bid in item.bullet_ids:
            if bid in bullets:
                b = bullets[bid]
                picked.append((b, exp.id, "experience", exp.start_date, exp.end_date, b.skills))
    for item in selection.projects:
        proj = projects.get(item.id)
        if proj is None:
            continue
        bullets = {b.id: b for b in proj.bullets}
        for bid in item.bullet_ids:
            if bid in bullets:
                b = bullets[bid]
                picked.append((b, proj.id, "project", proj.date, None, [*b.skills, *proj.skills]))

    total = len(picked)
    return [
        BulletCandidate(
            bullet_id=b.id,
            content=b.content,
            score=float(total - rank),
            parent_id=parent_id,
            parent_type=parent_type,
            start_date=start,
            end_date=end,
            tags=tuple(b.tags),
            skills=tuple(dict.fromkeys(skills)),
        )
        for rank, (b, parent_id, parent_type, start, end, skills) in enumerate(picked)
    ]


@dataclass(slots=True)
class _JobRun:
    """Mutable per-run scratch state; never shared across jobs."""

    job_id: str
    user_id: str
    job_description: str
    strategy: Strategy
    progress_map: Mapping[JobStage, int]
    fsm: SimpleStateMachine
    listener: Optional[ProgressListener]
    progress: int = 0
    parsed_jd: Optional[ParsedJD] = None
    terms: List[str] = field(default_factory=list)
    profile: Optional[ProfileData] = None
    candidates: List[BulletCandidate] = field(default_factory=list)
    selected: List[SelectedBullet] = field(default_factory=list)
    reasons: Dict[str, str] = field(default_factory=dict)
    rewrites: Dict[str, RewrittenBullet] = field(default_factory=dict)
    verified: Dict[str, VerifiedBullet] = field(default_factory=dict)


@dataclass(slots=True)
class PipelineOrchestrator:
    """Sequences one job's stages, owns its job record and emits progress events."""

    store: JobStore
    retriever: Retriever
    profiles: ProfileRepository
    ai: Optional[AIProvider] = None
    bus: EventBus = field(default_factory=InMemoryEventBus)
    settings: PipelineSettings = field(default_factory=get_pipeline_settings)
    obs: Logger = field(default_factory=NullLogger)
    logger: logging.Logger = field(default_factory=lambda: logger)

    # ----- Entry point -----

    async def run(
        self, submission: JobSubmission, listener: Optional[ProgressListener] = None
    ) -> ResumeDocument:
        """Process one job to COMPLETED or FAILED and return the assembled resume."""
        strategy: Strategy = submission.strategy or self.settings.default_strategy
        record = self.store.load(submission.job_id)
        if record is None:
            record = self.store.create(
                JobRecord(
                    job_id=submission.job_id,
                    user_id=submission.user_id,
                    job_description=submission.job_description,
                    strategy=strategy,
                )
            )
        if not record.is_active:
            raise PipelineError(
                f"Job {submission.job_id} already finished with status {record.status.value}"
            )

        run = _JobRun(
            job_id=submission.job_id,
            user_id=submission.user_id,
            job_description=submission.job_description,
            strategy=strategy,
            progress_map=FULL_PROGRESS if strategy == "openai" else LEXICAL_PROGRESS,
            fsm=build_stage_machine(),
            listener=listener,
        )

        with bind_log_context(job_id=run.job_id, strategy=strategy):
            self.logger.info("pipeline.start job=%s strategy=%s", run.job_id, strategy)
            try:
                if strategy == "openai":
                    resume = await self._run_full(run)
                else:
                    resume = await self._run_lexical(run)
            except Exception as exc:
                self._fail(run, exc)
                raise
            self.logger.info("pipeline.completed job=%s bullets=%d", run.job_id, len(run.selected))
            return resume

    # ----- Strategies -----

    async def _run_lexical(self, run: _JobRun) -> ResumeDocument:
        with self._stage(run, JobStage.PARSING_JD):
            run.terms = search_terms(extract(run.job_description))

        with self._stage(run, JobStage.RETRIEVING_BULLETS):
            run.candidates = await self.retriever.query_bullets(
                run.user_id, run.terms, self.settings.retrieval_size
            )

        with self._stage(run, JobStage.SELECTING_BULLETS):
            run.selected = select(run.candidates, self.settings.selection_constraints())

        with self._stage(run, JobStage.ASSEMBLING):
            resume = self._assemble_and_save(run)

        self._complete(run)
        return resume

    async def _run_full(self, run: _JobRun) -> ResumeDocument:
        ai = self.ai
        if ai is None:
            raise PipelineError("The 'openai' strategy requires an AI provider")
        ai_selection = self.settings.content_selection == "ai"

        with self._stage(run, JobStage.PARSING_JD):
            parsed_jd = run.parsed_jd = await ai.parse_job_description(run.job_description)
            self.store.update(run.job_id, parsed_jd=parsed_jd)
            run.terms = search_terms(
                extract(run.job_description),
                parsed_jd.required_skills,
                parsed_jd.keywords,
            )

        with self._stage(run, JobStage.RETRIEVING_BULLETS):
            if ai_selection:
                run.profile = self.profiles.load_profile(run.user_id)
            else:
                run.candidates = await self.retriever.query_bullets(
                    run.user_id, run.terms, self.settings.retrieval_size
                )

        with self._stage(run, JobStage.SELECTING_BULLETS):
            if ai_selection:
                selection = await ai.select_relevant_content(run.profile, parsed_jd)
                run.candidates = candidates_from_selection(run.profile, selection)
                run.reasons = {
                    item.id: item.relevance_reason
                    for item in (*selection.experiences, *selection.projects)
                    if item.relevance_reason
                }
            run.selected = select(run.candidates, self.settings.selection_constraints())

        if self.settings.skip_rewrite_bullets:
            run.rewrites = {b.bullet_id: _identity_rewrite(b) for b in run.selected}
        else:
            with self._stage(run, JobStage.REWRITING_BULLETS):
                run.rewrites = await self._rewrite_all(run, ai, parsed_jd)

        with self._stage(run, JobStage.VERIFYING):
            run.verified = verify_bullets(run.selected, run.rewrites)
            for v in run.verified.values():
                if v.verifier_note:
                    self._publish(
                        run,
                        BULLET_REVERTED,
                        {"jobId": run.job_id, "bulletId": v.bullet_id, "note": v.verifier_note},
                    )

        with self._stage(run, JobStage.ASSEMBLING):
            resume = self._assemble_and_save(run)

        self._complete(run)
        return resume

    # ----- Stage helpers -----

    async def _rewrite_all(
        self, run: _JobRun, ai: AIProvider, parsed_jd: ParsedJD
    ) -> Dict[str, RewrittenBullet]:
        async def _one(bullet: SelectedBullet) -> RewrittenBullet:
            try:
                return await ai.rewrite_bullet(
                    BulletInput(
                        id=bullet.bullet_id,
                        content=bullet.content,
                        tags=list(bullet.tags),
                        skills=list(bullet.skills),
                    ),
                    parsed_jd,
                )
            except Exception as exc:
                self.logger.warning(
                    "pipeline.rewrite_failed job=%s bullet=%s error=%s",
                    run.job_id,
                    bullet.bullet_id,
                    exc,
                )
                self._publish(
                    run,
                    BULLET_REWRITE_FAILED,
                    {"jobId": run.job_id, "bulletId": bullet.bullet_id, "error": str(exc)},
                )
                return _identity_rewrite(bullet, flags=[REWRITE_FAILED_FLAG])

        results = await asyncio.gather(*(_one(b) for b in run.selected))
        return {r.bullet_id: r for r in results}

    def _assemble_and_save(self, run: _JobRun) -> ResumeDocument:
        profile = run.profile or self.profiles.load_profile(run.user_id)
        skill_order = rank_skills(profile, run.selected, run.parsed_jd) if run.parsed_jd else None
        resume = assemble(
            profile,
            run.selected,
            verified=run.verified,
            skill_order=skill_order,
            reasons=run.reasons,
        )
        self.store.update(run.job_id, result_resume=resume, completed_at=utcnow())
        rows: List[BulletAuditRow] = []
        for b in run.selected:
            v = run.verified.get(b.bullet_id)
            rows.append(
                BulletAuditRow(
                    resume_job_id=run.job_id,
                    bullet_id=b.bullet_id,
                    original_text=b.content,
                    rewritten_text=v.text if v else b.content,
                    evidence={"evidenceBulletIds": [b.bullet_id]},
                    verifier_note=v.verifier_note if v else None,
                )
            )
        self.store.save_bullets(run.job_id, rows)
        return resume

    def _stage(self, run: _JobRun, stage: JobStage) -> Span:
        """Enter ``stage`` (transition, persist, publish) and return a timing span for its work."""
        run.fsm.trigger(stage.name)
        run.progress = run.progress_map[stage]
        self.store.update(
            run.job_id, status=JobStatus.PROCESSING, stage=stage, progress=run.progress
        )
        self.logger.info("pipeline.stage job=%s stage=%s progress=%d", run.job_id, stage.name, run.progress)
        self._publish(
            run, JOB_PROGRESS, {"jobId": run.job_id, "progress": run.progress, "stage": stage.value}
        )
        return Span(self.obs, "pipeline.stage", {"job_id": run.job_id, "stage": stage.name})

    def _complete(self, run: _JobRun) -> None:
        run.fsm.trigger(JobStage.COMPLETED.name)
        run.progress = run.progress_map[JobStage.COMPLETED]
        self.store.update(
            run.job_id, status=JobStatus.COMPLETED, stage=JobStage.COMPLETED, progress=run.progress
        )
        self._publish(
            run,
            JOB_PROGRESS,
            {"jobId": run.job_id, "progress": run.progress, "stage": JobStage.COMPLETED.value},
        )
        self._publish(run, JOB_COMPLETED, {"jobId": run.job_id})

    def _fail(self, run: _JobRun, exc: BaseException) -> None:
        message = str(exc) or type(exc).__name__
        self.logger.error(
            "pipeline.failed job=%s path=%s error=%s", run.job_id, "->".join(run.fsm.history), message
        )
        if run.fsm.can_trigger(JobStage.FAILED.name):
            run.fsm.trigger(JobStage.FAILED.name)
        try:
            self.store.update(
                run.job_id,
                status=JobStatus.FAILED,
                stage=JobStage.FAILED,
                progress=0,
                error_message=message,
                result_resume=None,
                completed_at=None,
            )
        except Exception:
            self.logger.exception("pipeline.fail_persist_error job=%s", run.job_id)
        self._publish(run, JOB_FAILED, {"jobId": run.job_id, "error": message})

    def _publish(self, run: _JobRun, event_type: str, payload: Dict[str, object]) -> None:
        event = Event(type=event_type, payload=payload, correlation_id=run.job_id)
        self.bus.publish(event)
        if run.listener is not None:
            run.listener(event)


def _identity_rewrite(bullet: SelectedBullet, flags: Optional[List[str]] = None) -> RewrittenBullet:
    return RewrittenBullet(
        bullet_id=bullet.bullet_id,
        rewritten_text=bullet.content,
        evidence_bullet_ids=[bullet.bullet_id],
        risk_flags=list(flags or []),
    )
