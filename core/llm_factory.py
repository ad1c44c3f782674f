"""Builds the async LLM client named by LLM_PROVIDER."""

from __future__ import annotations

from typing import Dict

from core.config import get_config_value, get_timeout_seconds
from core.llm_client import (
    AsyncClaudeLLMClient,
    AsyncGeminiLLMClient,
    AsyncLLMClient,
    AsyncOpenAILLMClient,
)
from core.obs import JsonRepoLogger, Logger

# Provider name -> client class. gpt-5 models go through "openai"; the client
# drops the temperature they reject.
_ASYNC_PROVIDERS: Dict[str, type] = {
    "openai": AsyncOpenAILLMClient,
    "claude": AsyncClaudeLLMClient,
    "gemini": AsyncGeminiLLMClient,
}


def available_providers() -> list[str]:
    return sorted(_ASYNC_PROVIDERS)


def _provider_name(provider: str | None) -> str:
    return (provider or get_config_value("LLM_PROVIDER", "openai") or "openai").strip().lower()


def get_async_llm_client(logger: Logger | None = None, provider: str | None = None) -> AsyncLLMClient:
    """Instantiate the configured provider's client with the shared LLM timeout.

    Calls are logged to logs/llm.log unless a logger is injected.
    """
    name = _provider_name(provider)
    client_cls = _ASYNC_PROVIDERS.get(name)
    if client_cls is None:
        raise ValueError(f"Unknown async LLM provider '{name}'; expected one of {available_providers()}")
    return client_cls(logger=logger or JsonRepoLogger(service="llm"), timeout=get_timeout_seconds())
