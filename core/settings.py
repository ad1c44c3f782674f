"""Centralized settings for configuration-driven components."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from core.config import get_config, get_config_value
from core.models import SelectionConstraints, Strategy, TargetCount

_STRATEGIES = ("openai", "bm25")
_CONTENT_SELECTION_MODES = ("retrieval", "ai")


@dataclass(slots=True)
class AppSettings:
    app_env: str = "dev"
    service_name: str = "resume-pipeline"
    app_version: str = "0.1.0"
    log_dir: Path = Path("logs")


@lru_cache
def get_app_settings() -> AppSettings:
    return AppSettings(
        app_env=get_config_value("APP_ENV", "dev") or "dev",
        service_name=get_config_value("SERVICE_NAME", "resume-pipeline") or "resume-pipeline",
        app_version=get_config_value("APP_VERSION", "0.1.0") or "0.1.0",
        log_dir=Path(get_config_value("LOG_DIR", "logs") or "logs"),
    )


@dataclass(slots=True)
class PipelineSettings:
    """Knobs for selection, retrieval, the worker pool and optional stages."""

    max_bullets_per_parent: int = 4
    similarity_threshold: float = 0.7
    target_bullets_min: int = 12
    target_bullets_max: int = 16
    retrieval_size: int = 50
    worker_concurrency: int = 10
    max_active_jobs: int = 10
    default_strategy: Strategy = "openai"
    skip_rewrite_bullets: bool = False
    content_selection: str = "retrieval"
    job_store_dir: Path = Path("pipeline_jobs")

    def selection_constraints(self) -> SelectionConstraints:
        return SelectionConstraints(
            max_bullets_per_parent=self.max_bullets_per_parent,
            similarity_threshold=self.similarity_threshold,
            target_count=TargetCount(min=self.target_bullets_min, max=self.target_bullets_max),
        )


@lru_cache
def get_pipeline_settings() -> PipelineSettings:
    cfg = get_config()
    strategy = (cfg.get("DEFAULT_STRATEGY", "openai") or "openai").strip().lower()
    if strategy not in _STRATEGIES:
        raise ValueError(f"DEFAULT_STRATEGY must be one of {_STRATEGIES}, got {strategy!r}")
    selection = (cfg.get("CONTENT_SELECTION", "retrieval") or "retrieval").strip().lower()
    if selection not in _CONTENT_SELECTION_MODES:
        raise ValueError(
            f"CONTENT_SELECTION must be one of {_CONTENT_SELECTION_MODES}, got {selection!r}"
        )
    return PipelineSettings(
        max_bullets_per_parent=cfg.get_int("MAX_BULLETS_PER_PARENT", 4),
        similarity_threshold=cfg.get_float("SIMILARITY_THRESHOLD", 0.7),
        target_bullets_min=cfg.get_int("TARGET_BULLETS_MIN", 12),
        target_bullets_max=cfg.get_int("TARGET_BULLETS_MAX", 16),
        retrieval_size=cfg.get_int("RETRIEVAL_SIZE", 50),
        worker_concurrency=cfg.get_int("WORKER_CONCURRENCY", 10),
        max_active_jobs=cfg.get_int("MAX_ACTIVE_JOBS", 10),
        default_strategy=strategy,  # type: ignore[arg-type]
        skip_rewrite_bullets=cfg.get_bool("SKIP_REWRITE_BULLETS", False),
        content_selection=selection,
        job_store_dir=Path(cfg.get("JOB_STORE_DIR", "pipeline_jobs") or "pipeline_jobs"),
    )
