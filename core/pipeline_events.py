"""Event name contracts for the resume tailoring pipeline.

This module centralizes event type strings so the orchestrator, the job
queue and any external subscriber (UI push, scripts) share a single source
of truth.

Only constants live here (no side effects).
"""

from __future__ import annotations

# ----- Job lifecycle -----

JOB_SUBMITTED = "job.submitted"
JOB_PROGRESS = "job.progress"
JOB_COMPLETED = "job.completed"
JOB_FAILED = "job.failed"

# ----- Per-bullet diagnostics -----

BULLET_REWRITE_FAILED = "bullet.rewrite_failed"
BULLET_REVERTED = "bullet.reverted"
