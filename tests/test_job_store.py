import json

import pytest

from core.job_store import InMemoryJobStore, JobNotFoundError, JsonFileJobStore
from core.models import BulletAuditRow, JobRecord, JobStage, JobStatus


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryJobStore()
    return JsonFileJobStore(root=tmp_path / "jobs")


def record(job_id="job-1", **kw):
    return JobRecord(job_id=job_id, user_id="u1", job_description="Backend role", **kw)


def test_create_is_idempotent(store):
    first = store.create(record())
    second = store.create(record(strategy="bm25"))
    assert second.job_id == first.job_id
    assert store.load("job-1").strategy is None


def test_load_missing_returns_none(store):
    assert store.load("nope") is None


def test_update_changes_fields_and_bumps_updated_at(store):
    created = store.create(record())
    updated = store.update("job-1", status=JobStatus.PROCESSING, stage=JobStage.PARSING_JD, progress=10)
    assert updated.status == JobStatus.PROCESSING
    assert updated.stage == JobStage.PARSING_JD
    assert updated.progress == 10
    assert updated.updated_at >= created.updated_at
    assert store.load("job-1").progress == 10


def test_update_unknown_job_or_field(store):
    with pytest.raises(JobNotFoundError):
        store.update("missing", progress=5)
    store.create(record())
    with pytest.raises(ValueError):
        store.update("job-1", colour="blue")


def test_audit_rows_round_trip(store):
    store.create(record())
    rows = [
        BulletAuditRow(
            resume_job_id="job-1",
            bullet_id="b1",
            original_text="orig",
            rewritten_text="new",
            evidence={"evidenceBulletIds": ["b1"]},
        )
    ]
    store.save_bullets("job-1", rows)
    loaded = store.load_bullets("job-1")
    assert loaded == rows
    assert store.load_bullets("other") == []


def test_list_and_count_active(store):
    store.create(record("a"))
    store.create(record("b"))
    store.create(record("c"))
    store.update("b", status=JobStatus.COMPLETED, stage=JobStage.COMPLETED, progress=100)
    assert {r.job_id for r in store.list_jobs()} == {"a", "b", "c"}
    assert len(store.list_jobs(limit=2)) == 2
    assert store.count_active() == 2


def test_json_store_persists_wire_form_across_instances(tmp_path):
    root = tmp_path / "jobs"
    JsonFileJobStore(root=root).create(record())
    JsonFileJobStore(root=root).update("job-1", progress=40)

    raw = json.loads((root / "job-1.json").read_text(encoding="utf-8"))
    assert raw["jobId"] == "job-1"
    assert raw["progress"] == 40
    assert JsonFileJobStore(root=root).load("job-1").progress == 40
    assert not list(root.glob("*.tmp"))


def test_json_store_skips_unreadable_files(tmp_path):
    root = tmp_path / "jobs"
    store = JsonFileJobStore(root=root)
    store.create(record())
    (root / "broken.json").write_text("{not json", encoding="utf-8")
    assert [r.job_id for r in store.list_jobs()] == ["job-1"]
