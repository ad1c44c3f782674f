"""Base exception for pipeline orchestration failures."""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base error for job orchestration (store, state machine, queue, stages)."""
