""" Async LLM client port and provider adapters (OpenAI, Anthropic Claude, Google Gemini). """

from __future__ import annotations

import asyncio
import logging
import random
import uuid
from typing import Any, Optional, Protocol

import anthropic
import google.generativeai as genai
import httpx
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from core.config import get_config, get_config_value, get_timeout_seconds
from core.obs import Logger, NullLogger, with_span

logger = logging.getLogger(__name__)

# Transport-level timeouts worth retrying; everything else propagates at once.
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    openai.APITimeoutError,
    anthropic.APITimeoutError,
    httpx.TimeoutException,
    asyncio.TimeoutError,
)


def _log_content_enabled() -> bool:
    """Whether logs may include prompt/response text previews (LLM_LOG_CONTENT, default on)."""
    return get_config().get_bool("LLM_LOG_CONTENT", True)


def _safe_text_preview(text: str, limit: int = 1000) -> str:
    return (text or "")[:limit]


def _safe_messages(messages: list[dict[str, str]], *, log_content: bool) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for m in messages:
        content = m.get("content") or ""
        entry: dict[str, Any] = {"role": m.get("role")}
        if log_content:
            entry["content"] = _safe_text_preview(content)
        else:
            entry["content_len"] = len(content)
        out.append(entry)
    return out


def _split_system(messages: list[dict[str, str]]) -> tuple[str | None, list[dict[str, str]]]:
    """Pull the first system message out; everything else becomes user/assistant turns."""
    system = None
    rest: list[dict[str, str]] = []
    for m in messages:
        role = m.get("role")
        content = m.get("content", "")
        if role == "system" and system is None:
            system = content
            continue
        rest.append({"role": "assistant" if role == "assistant" else "user", "content": content})
    return system, rest


def _span_fields(*args: Any, **kwargs: Any) -> dict[str, Any]:
    model = kwargs.get("model")
    if model is None and len(args) >= 3:
        model = args[2]
    return {"provider": getattr(args[0], "provider", None), "model": model}


# ---------- Port ----------


class AsyncLLMClient(Protocol):
    """Port interface for async LLM calls."""

    async def chat(
        self,
        messages: list[dict[str, str]],
        model: str,
        temperature: float = 0.0,
    ) -> str:
        """
        Send chat messages to an LLM and return the assistant's content.
        """
        ...


class _BaseAsyncClient:
    """Shared request logging and timeout retry; subclasses implement ``_send``."""

    provider = "base"

    def __init__(self, timeout: float | None = None, max_retries: int = 3, logger: Optional[Logger] = None):
        self._timeout = float(timeout) if timeout is not None else get_timeout_seconds()
        self._max_retries = max(1, max_retries)
        self._logger: Logger = logger or NullLogger()

    async def _send(
        self, messages: list[dict[str, str]], model: str, temperature: float, **kwargs: Any
    ) -> tuple[str, Any]:
        raise NotImplementedError

    @with_span("llm.chat", fields_fn=_span_fields)
    async def chat(self, messages, model, temperature=0.0, **kwargs) -> str:
        req_id = kwargs.pop("req_id", None) or str(uuid.uuid4())
        log_content = _log_content_enabled()
        self._logger.info(
            "llm.request",
            req_id=req_id,
            provider=self.provider,
            model=model,
            temperature=temperature,
            message_count=len(messages),
            messages=_safe_messages(messages, log_content=log_content),
        )
        for attempt in range(self._max_retries):
            try:
                content, usage = await self._send(messages, model, temperature, **kwargs)
            except RETRYABLE_ERRORS as e:
                self._logger.warn(
                    "llm.timeout",
                    req_id=req_id,
                    provider=self.provider,
                    model=model,
                    attempt=attempt + 1,
                    error=str(e),
                )
                if attempt == self._max_retries - 1:
                    raise
                await asyncio.sleep(2 ** attempt + random.random())
                continue
            resp_fields: dict[str, Any] = {
                "req_id": req_id,
                "provider": self.provider,
                "model": model,
                "attempt": attempt + 1,
                "usage": getattr(usage, "__dict__", None) if usage else None,
                "content_len": len(content or ""),
            }
            if log_content:
                resp_fields["preview"] = _safe_text_preview(content or "")
            self._logger.info("llm.response", **resp_fields)
            return content or ""
        raise RuntimeError("unreachable: retry loop exited without result")


class AsyncOpenAILLMClient(_BaseAsyncClient):
    provider = "openai"

    def __init__(
        self,
        timeout: float | None = None,
        max_retries: int = 3,
        logger: Optional[Logger] = None,
        api_key: str | None = None,
    ):
        super().__init__(timeout=timeout, max_retries=max_retries, logger=logger)
        self._client = AsyncOpenAI(api_key=api_key or get_config_value("OPENAI_API_KEY"))

    async def _send(self, messages, model, temperature, **kwargs):
        payload: dict[str, Any] = dict(model=model, messages=messages, timeout=self._timeout, **kwargs)
        # gpt-5 family only accepts the default temperature.
        if not model.lower().startswith("gpt-5"):
            payload["temperature"] = temperature
        resp = await self._client.chat.completions.create(**payload)
        return resp.choices[0].message.content, getattr(resp, "usage", None)


class AsyncClaudeLLMClient(_BaseAsyncClient):
    provider = "anthropic"

    def __init__(
        self,
        timeout: float | None = None,
        max_retries: int = 3,
        logger: Optional[Logger] = None,
        max_tokens: int | None = None,
        api_key: str | None = None,
    ):
        super().__init__(timeout=timeout, max_retries=max_retries, logger=logger)
        self._client = AsyncAnthropic(
            api_key=api_key or get_config_value("ANTHROPIC_API_KEY"), timeout=self._timeout
        )
        self._max_tokens = max_tokens or get_config().get_int("CLAUDE_MAX_TOKENS", 1024)

    async def _send(self, messages, model, temperature, **kwargs):
        system, converted = _split_system(messages)
        payload: dict[str, Any] = {
            "model": model,
            "messages": converted,
            "max_tokens": kwargs.pop("max_tokens", self._max_tokens),
            "temperature": temperature,
        }
        if system:
            payload["system"] = system
        resp = await self._client.messages.create(**payload)
        content = resp.content[0].text if resp.content else ""
        return content, getattr(resp, "usage", None)


def _extract_gemini_text(resp: object) -> str:
    """Best-effort extraction of text from Gemini responses.

    ``response.text`` raises when the response has no text part (blocked
    output, MAX_TOKENS, tool-only parts), so fall back to walking candidates.
    """
    try:
        return (getattr(resp, "text") or "").strip()
    except (ValueError, AttributeError):
        candidates = getattr(resp, "candidates", None) or []
        if not candidates:
            raise RuntimeError("Gemini returned no candidates / no text parts")
        first = candidates[0]
        parts = getattr(getattr(first, "content", None), "parts", None) or []
        texts = [str(p.text) for p in parts if getattr(p, "text", None)]
        if texts:
            return "\n".join(texts).strip()
        reason = getattr(first, "finish_reason", None)
        raise RuntimeError(
            f"Gemini returned no text parts (finish_reason={getattr(reason, 'name', reason)}); "
            "if this is MAX_TOKENS, raise GEMINI_MAX_TOKENS"
        )


class AsyncGeminiLLMClient(_BaseAsyncClient):
    provider = "gemini"

    def __init__(
        self,
        timeout: float | None = None,
        max_retries: int = 3,
        logger: Optional[Logger] = None,
        max_output_tokens: int | None = None,
        api_key: str | None = None,
    ):
        super().__init__(timeout=timeout, max_retries=max_retries, logger=logger)
        genai.configure(api_key=api_key or get_config_value("GOOGLE_API_KEY"))
        self._max_tokens = max_output_tokens or get_config().get_int("GEMINI_MAX_TOKENS", 8192)

    async def _send(self, messages, model, temperature, **kwargs):
        system, converted = _split_system(messages)
        contents = [
            {"role": "model" if m["role"] == "assistant" else "user", "parts": [m["content"]]}
            for m in converted
        ]
        gm = genai.GenerativeModel(model_name=model, system_instruction=system)
        resp = await gm.generate_content_async(
            contents,
            generation_config={
                "temperature": temperature,
                "max_output_tokens": kwargs.pop("max_output_tokens", self._max_tokens),
            },
            request_options=genai.types.RequestOptions(timeout=self._timeout),
        )
        return _extract_gemini_text(resp), getattr(resp, "usage_metadata", None)
