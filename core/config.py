"""Process-wide configuration lookup.

Values resolve from the environment first, then the .env file named by
DOTENV_PATH, then (when AWS_SECRETSMANAGER_CONFIG_ID is set) a Secrets
Manager JSON secret. The adapter is built once; tests reset it with
``_config_adapter.cache_clear()``.
"""

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path

from core.config_adapter import (
    ConfigAdapter,
    ConfigSource,
    DotEnvConfigSource,
    EnvConfigSource,
    SecretsManagerConfigSource,
)

DEFAULT_LLM_TIMEOUT_SECONDS = 60.0


def _build_sources() -> list[ConfigSource]:
    sources: list[ConfigSource] = [
        EnvConfigSource(),
        DotEnvConfigSource(path=Path(os.getenv("DOTENV_PATH", ".env"))),
    ]
    secret_id = os.getenv("AWS_SECRETSMANAGER_CONFIG_ID")
    if secret_id:
        sources.append(
            SecretsManagerConfigSource(
                secret_id=secret_id,
                region_name=os.getenv("AWS_REGION"),
                profile_name=os.getenv("AWS_PROFILE"),
            )
        )
    return sources


@lru_cache
def _config_adapter() -> ConfigAdapter:
    return ConfigAdapter(tuple(_build_sources()))


def get_config() -> ConfigAdapter:
    return _config_adapter()


def get_config_value(key: str, default: str | None = None) -> str | None:
    return _config_adapter().get(key, default)


def get_default_model() -> str:
    """Model name used by every agent (LLM_MODEL); there is no built-in default."""
    model = (get_config_value("LLM_MODEL") or "").strip()
    if not model:
        raise RuntimeError("LLM_MODEL is not configured; set it in your config/.env")
    return model


def get_timeout_seconds() -> float:
    """Per-call LLM timeout (LLM_TIMEOUT_SECONDS); unset or unparsable means 60s."""
    try:
        return get_config().get_float("LLM_TIMEOUT_SECONDS", DEFAULT_LLM_TIMEOUT_SECONDS)
    except ValueError:
        return DEFAULT_LLM_TIMEOUT_SECONDS
