"""Pluggable persistence for job records and per-bullet audit rows.

The JobStore protocol allows different backends (in-memory, JSON files, a
relational database) to hold the durable job record that external observers
poll. The orchestrator is the only writer for a given job_id.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from core.errors import PipelineError
from core.models import BulletAuditRow, JobRecord, utcnow

logger = logging.getLogger(__name__)


class JobNotFoundError(PipelineError):
    """Raised when an update targets a job_id that was never created."""


class JobStore(Protocol):
    """Abstract storage for job records and their audit rows."""

    def create(self, record: JobRecord) -> JobRecord:
        """Persist a new record; returns the existing one if job_id is already known."""

    def load(self, job_id: str) -> Optional[JobRecord]:
        """Return the record for job_id, or None if not found."""

    def update(self, job_id: str, **changes: Any) -> JobRecord:
        """Apply field changes (snake_case names) and bump updated_at."""

    def save_bullets(self, job_id: str, rows: Sequence[BulletAuditRow]) -> None:
        """Append audit rows for job_id."""

    def load_bullets(self, job_id: str) -> List[BulletAuditRow]:
        """Return the audit rows stored for job_id."""

    def list_jobs(self, limit: int = 50) -> List[JobRecord]:
        """Return up to `limit` records, newest first."""

    def count_active(self) -> int:
        """Number of jobs currently QUEUED or PROCESSING."""


def _apply(record: JobRecord, job_id: str, changes: Dict[str, Any]) -> JobRecord:
    unknown = set(changes) - set(JobRecord.model_fields)
    if unknown:
        raise ValueError(f"Unknown job fields for {job_id}: {sorted(unknown)}")
    data = record.model_dump()
    data.update(changes)
    data["updated_at"] = utcnow()
    return JobRecord.model_validate(data)


@dataclass
class InMemoryJobStore:
    """In-memory JobStore implementation for dev/test.

    Not durable across restarts, but exercises the same interface as a real
    database-backed implementation.
    """

    _jobs: Dict[str, JobRecord] = field(default_factory=dict)
    _bullets: Dict[str, List[BulletAuditRow]] = field(default_factory=dict)

    def create(self, record: JobRecord) -> JobRecord:
        existing = self._jobs.get(record.job_id)
        if existing is not None:
            return existing
        self._jobs[record.job_id] = record
        return record

    def load(self, job_id: str) -> Optional[JobRecord]:
        return self._jobs.get(job_id)

    def update(self, job_id: str, **changes: Any) -> JobRecord:
        record = self._jobs.get(job_id)
        if record is None:
            raise JobNotFoundError(job_id)
        updated = _apply(record, job_id, changes)
        self._jobs[job_id] = updated
        return updated

    def save_bullets(self, job_id: str, rows: Sequence[BulletAuditRow]) -> None:
        self._bullets.setdefault(job_id, []).extend(rows)

    def load_bullets(self, job_id: str) -> List[BulletAuditRow]:
        return list(self._bullets.get(job_id, []))

    def list_jobs(self, limit: int = 50) -> List[JobRecord]:
        ordered = sorted(self._jobs.values(), key=lambda r: r.created_at, reverse=True)
        return ordered[:limit]

    def count_active(self) -> int:
        return sum(1 for r in self._jobs.values() if r.is_active)


@dataclass
class JsonFileJobStore:
    """Persist job records as JSON files in a local directory.

    Each job is stored as <root>/<job_id>.json and its audit rows as
    <root>/<job_id>.bullets.json, written atomically through a temp file.
    Records are stored in wire form (camelCase keys).
    """

    root: Path
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self) -> None:
        self.root = Path(self.root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, job_id: str) -> Path:
        return self.root / f"{job_id}.json"

    def _bullets_path_for(self, job_id: str) -> Path:
        return self.root / f"{job_id}.bullets.json"

    @staticmethod
    def _write(path: Path, payload: Any) -> None:
        tmp = path.with_suffix(path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        tmp.replace(path)

    @staticmethod
    def _read(path: Path) -> Any:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)

    def create(self, record: JobRecord) -> JobRecord:
        with self._lock:
            existing = self.load(record.job_id)
            if existing is not None:
                return existing
            self._write(self._path_for(record.job_id), record.to_wire())
            return record

    def load(self, job_id: str) -> Optional[JobRecord]:
        path = self._path_for(job_id)
        if not path.exists():
            return None
        return JobRecord.model_validate(self._read(path))

    def update(self, job_id: str, **changes: Any) -> JobRecord:
        with self._lock:
            record = self.load(job_id)
            if record is None:
                raise JobNotFoundError(job_id)
            updated = _apply(record, job_id, changes)
            self._write(self._path_for(job_id), updated.to_wire())
            return updated

    def save_bullets(self, job_id: str, rows: Sequence[BulletAuditRow]) -> None:
        with self._lock:
            existing = [r.to_wire() for r in self.load_bullets(job_id)]
            self._write(self._bullets_path_for(job_id), existing + [r.to_wire() for r in rows])

    def load_bullets(self, job_id: str) -> List[BulletAuditRow]:
        path = self._bullets_path_for(job_id)
        if not path.exists():
            return []
        return [BulletAuditRow.model_validate(row) for row in self._read(path)]

    def _all(self) -> List[JobRecord]:
        records: List[JobRecord] = []
        for p in self.root.glob("*.json"):
            if p.name.endswith(".bullets.json"):
                continue
            try:
                records.append(JobRecord.model_validate(self._read(p)))
            except (json.JSONDecodeError, ValueError):
                logger.warning("job_store.skip_unreadable path=%s", p)
        return records

    def list_jobs(self, limit: int = 50) -> List[JobRecord]:
        return sorted(self._all(), key=lambda r: r.created_at, reverse=True)[:limit]

    def count_active(self) -> int:
        return sum(1 for r in self._all() if r.is_active)

