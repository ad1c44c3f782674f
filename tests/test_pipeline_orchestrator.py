import pytest

from core.errors import PipelineError
from core.events import InMemoryEventBus
from core.job_store import InMemoryJobStore
from core.models import (
    ContentSelection,
    JobRecord,
    JobStage,
    JobStatus,
    JobSubmission,
    SelectionItem,
)
from core.pipeline_events import (
    BULLET_REVERTED,
    BULLET_REWRITE_FAILED,
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_PROGRESS,
)
from core.pipeline_orchestrator import (
    FULL_PROGRESS,
    LEXICAL_PROGRESS,
    PipelineOrchestrator,
    candidates_from_selection,
)
from core.profile_store import InMemoryProfileRepository
from core.retrieval import InMemoryBulletRetriever
from core.settings import PipelineSettings

JD = (
    "We need a backend engineer with Node.js, Kubernetes, Docker and Python "
    "experience building API services."
)


# --------- Fakes ---------


class ExplodingRetriever:
    async def query_bullets(self, user_id, search_terms, size):
        raise RuntimeError("search cluster unavailable")


# --------- Fixtures ---------


@pytest.fixture
def store():
    return InMemoryJobStore()


@pytest.fixture
def bus():
    return InMemoryEventBus()


@pytest.fixture
def profiles(sample_profile):
    repo = InMemoryProfileRepository()
    repo.put("u1", sample_profile)
    return repo


@pytest.fixture
def make_orchestrator(store, bus, profiles, pipeline_settings):
    def _make(ai=None, settings=None, retriever=None):
        return PipelineOrchestrator(
            store=store,
            retriever=retriever or InMemoryBulletRetriever(profiles=profiles),
            profiles=profiles,
            ai=ai,
            bus=bus,
            settings=settings or pipeline_settings,
        )

    return _make


def submission(strategy="openai", job_id="job-1"):
    return JobSubmission(job_id=job_id, user_id="u1", job_description=JD, strategy=strategy)


def stages_of(events):
    return [(e.payload["stage"], e.payload["progress"]) for e in events]


# --------- Tests ---------


@pytest.mark.asyncio
async def test_full_strategy_walks_every_stage(make_orchestrator, fake_ai, store, bus):
    resume = await make_orchestrator(ai=fake_ai).run(submission())

    progress = bus.drain(JOB_PROGRESS)
    assert stages_of(progress) == [(stage.value, pct) for stage, pct in FULL_PROGRESS.items()]
    assert [e.correlation_id for e in progress] == ["job-1"] * len(progress)
    assert len(bus.drain(JOB_COMPLETED)) == 1

    record = store.load("job-1")
    assert record.status == JobStatus.COMPLETED
    assert record.stage == JobStage.COMPLETED
    assert record.progress == 100
    assert record.completed_at is not None
    assert record.parsed_jd == fake_ai.parsed
    assert record.result_resume == resume

    rows = store.load_bullets("job-1")
    assert {r.bullet_id for r in rows} == {"b1", "b2", "b3", "b4", "b5", "b6"}
    assert all(r.evidence == {"evidenceBulletIds": [r.bullet_id]} for r in rows)
    assert fake_ai.calls[0] == "parse"
    assert sum(c.startswith("rewrite:") for c in fake_ai.calls) == 6


@pytest.mark.asyncio
async def test_full_strategy_ranks_skills_for_the_job(make_orchestrator, fake_ai):
    resume = await make_orchestrator(ai=fake_ai).run(submission())
    infra = next(c for c in resume.skill_categories if c.id == "cat-2")
    names = [s.name for s in infra.skills]
    assert names.index("Kubernetes") < names.index("Terraform")
    assert names[-1] == "Terraform"


@pytest.mark.asyncio
async def test_lexical_strategy_needs_no_ai(make_orchestrator, store, bus):
    resume = await make_orchestrator(ai=None).run(submission(strategy="bm25"))

    assert stages_of(bus.drain(JOB_PROGRESS)) == [
        (stage.value, pct) for stage, pct in LEXICAL_PROGRESS.items()
    ]
    assert store.load("job-1").status == JobStatus.COMPLETED
    assert resume.experiences
    rows = store.load_bullets("job-1")
    assert all(r.rewritten_text == r.original_text and r.verifier_note is None for r in rows)
    # lexical runs keep the profile's skill order
    assert [s.id for s in resume.skill_categories[1].skills] == ["s4", "s5", "s6"]


@pytest.mark.asyncio
async def test_listener_sees_same_progress_as_bus(make_orchestrator, fake_ai, bus):
    seen = []
    await make_orchestrator(ai=fake_ai).run(submission(), listener=seen.append)
    progress = [e for e in seen if e.type == JOB_PROGRESS]
    assert stages_of(progress) == stages_of(bus.drain(JOB_PROGRESS))
    values = [e.payload["progress"] for e in progress]
    assert values == sorted(values)
    assert seen[-1].type == JOB_COMPLETED


@pytest.mark.asyncio
async def test_parse_failure_marks_job_failed_and_reraises(make_orchestrator, make_fake_ai, store, bus):
    ai = make_fake_ai(parse_error=RuntimeError("llm unavailable"))
    with pytest.raises(RuntimeError, match="llm unavailable"):
        await make_orchestrator(ai=ai).run(submission())

    record = store.load("job-1")
    assert record.status == JobStatus.FAILED
    assert record.stage == JobStage.FAILED
    assert record.progress == 0
    assert record.error_message == "llm unavailable"
    assert record.result_resume is None
    assert record.completed_at is None

    failed = bus.drain(JOB_FAILED)
    assert [e.payload for e in failed] == [{"jobId": "job-1", "error": "llm unavailable"}]
    assert stages_of(bus.drain(JOB_PROGRESS)) == [(JobStage.PARSING_JD.value, 10)]
    assert bus.drain(JOB_COMPLETED) == []


@pytest.mark.asyncio
async def test_retrieval_failure_stops_at_retrieving(make_orchestrator, fake_ai, store, bus):
    orchestrator = make_orchestrator(ai=fake_ai, retriever=ExplodingRetriever())
    with pytest.raises(RuntimeError, match="search cluster"):
        await orchestrator.run(submission())

    assert [e.payload["progress"] for e in bus.drain(JOB_PROGRESS)] == [10, 25]
    assert store.load("job-1").status == JobStatus.FAILED
    assert not any(c.startswith("rewrite:") for c in fake_ai.calls)


@pytest.mark.asyncio
async def test_failed_rewrite_falls_back_to_original(make_orchestrator, make_fake_ai, store, bus):
    ai = make_fake_ai(failing=("b1",))
    resume = await make_orchestrator(ai=ai).run(submission())

    assert store.load("job-1").status == JobStatus.COMPLETED
    failures = bus.drain(BULLET_REWRITE_FAILED)
    assert [e.payload["bulletId"] for e in failures] == ["b1"]
    row = next(r for r in store.load_bullets("job-1") if r.bullet_id == "b1")
    assert row.rewritten_text == row.original_text
    b1 = next(b for e in resume.experiences for b in e.bullets if b.id == "b1")
    assert b1.text == row.original_text


@pytest.mark.asyncio
async def test_unsupported_rewrite_is_reverted(make_orchestrator, make_fake_ai, store, bus, sample_profile):
    original = sample_profile.experiences[0].bullets[1].content
    ai = make_fake_ai(
        rewrites={
            "b2": "Led migration of the deployment pipeline to Docker and Kubernetes on AWS for 40 services",
            "b4": "Built Python data pipelines feeding PostgreSQL reporting tables",
        }
    )
    resume = await make_orchestrator(ai=ai).run(submission())

    rows = {r.bullet_id: r for r in store.load_bullets("job-1")}
    assert rows["b2"].rewritten_text == original
    assert rows["b2"].verifier_note.startswith("Reverted due to:")
    assert "numbers" in rows["b2"].verifier_note
    assert rows["b4"].rewritten_text.startswith("Built Python")
    assert rows["b4"].verifier_note is None
    assert [e.payload["bulletId"] for e in bus.drain(BULLET_REVERTED)] == ["b2"]

    texts = {b.id: b.text for e in resume.experiences for b in e.bullets}
    assert texts["b2"] == original


@pytest.mark.asyncio
async def test_skip_rewrite_goes_straight_to_verifying(make_orchestrator, fake_ai, bus, tmp_path):
    settings = PipelineSettings(skip_rewrite_bullets=True, job_store_dir=tmp_path)
    await make_orchestrator(ai=fake_ai, settings=settings).run(submission())

    labels = [stage for stage, _ in stages_of(bus.drain(JOB_PROGRESS))]
    assert JobStage.REWRITING_BULLETS.value not in labels
    assert JobStage.VERIFYING.value in labels
    assert not any(c.startswith("rewrite:") for c in fake_ai.calls)


@pytest.mark.asyncio
async def test_ai_content_selection(make_orchestrator, make_fake_ai, tmp_path):
    selection = ContentSelection(
        experiences=[SelectionItem(id="exp-1", bullet_ids=["b2", "b1"], relevance_reason="Cloud work")]
    )
    ai = make_fake_ai(selection=selection)
    settings = PipelineSettings(content_selection="ai", job_store_dir=tmp_path)
    resume = await make_orchestrator(ai=ai, settings=settings).run(submission())

    assert "select" in ai.calls
    assert [e.id for e in resume.experiences] == ["exp-1"]
    assert [b.id for b in resume.experiences[0].bullets] == ["b2", "b1"]
    assert resume.experiences[0].relevance_reason == "Cloud work"
    assert resume.projects == []


def test_candidates_from_selection_scores_by_rank(sample_profile):
    selection = ContentSelection(
        experiences=[SelectionItem(id="exp-2", bullet_ids=["b5", "missing", "b4"])],
        projects=[SelectionItem(id="proj-1", bullet_ids=["b6"])],
    )
    out = candidates_from_selection(sample_profile, selection)
    assert [(c.bullet_id, c.score) for c in out] == [("b5", 3.0), ("b4", 2.0), ("b6", 1.0)]
    assert out[2].parent_type == "project"
    assert "FastAPI" in out[2].skills


def test_candidates_from_selection_skips_unknown_parents(sample_profile):
    selection = ContentSelection(
        experiences=[
            SelectionItem(id="exp-ghost", bullet_ids=["bx"]),
            SelectionItem(id="exp-1", bullet_ids=["b1"]),
        ],
        projects=[SelectionItem(id="proj-ghost", bullet_ids=["b6"])],
    )
    out = candidates_from_selection(sample_profile, selection)
    assert [(c.bullet_id, c.parent_id, c.score) for c in out] == [("b1", "exp-1", 1.0)]


@pytest.mark.asyncio
async def test_ai_selection_with_unknown_parent_still_completes(
    make_orchestrator, make_fake_ai, store, tmp_path
):
    selection = ContentSelection(
        experiences=[
            SelectionItem(id="exp-ghost", bullet_ids=["bx"]),
            SelectionItem(id="exp-1", bullet_ids=["b1"]),
        ]
    )
    settings = PipelineSettings(content_selection="ai", job_store_dir=tmp_path)
    resume = await make_orchestrator(ai=make_fake_ai(selection=selection), settings=settings).run(
        submission()
    )

    assert [b.id for e in resume.experiences for b in e.bullets] == ["b1"]
    assert store.load("job-1").status == JobStatus.COMPLETED


@pytest.mark.asyncio
async def test_openai_strategy_without_provider_fails(make_orchestrator, store):
    with pytest.raises(PipelineError):
        await make_orchestrator(ai=None).run(submission())
    assert store.load("job-1").status == JobStatus.FAILED


@pytest.mark.asyncio
async def test_finished_job_is_not_rerun(make_orchestrator, fake_ai, store):
    store.create(
        JobRecord(job_id="job-1", user_id="u1", status=JobStatus.COMPLETED, stage=JobStage.COMPLETED, progress=100)
    )
    with pytest.raises(PipelineError, match="already finished"):
        await make_orchestrator(ai=fake_ai).run(submission())
    assert fake_ai.calls == []


@pytest.mark.asyncio
async def test_default_strategy_comes_from_settings(make_orchestrator, store, tmp_path):
    settings = PipelineSettings(default_strategy="bm25", job_store_dir=tmp_path)
    await make_orchestrator(settings=settings).run(submission(strategy=None))
    assert store.load("job-1").strategy == "bm25"
