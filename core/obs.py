"""Structured JSON logging and timing spans for pipeline runs and LLM calls.

Records are one JSON object per line on stdout (errors on stderr) and,
optionally, appended to a log file. Fields bound with ``bind_log_context``
(job id, strategy) are merged into every record emitted inside the block.
"""

from __future__ import annotations

import contextlib
import contextvars
import datetime
import functools
import inspect
import json
import os
import sys
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping, Optional, Protocol

from core.config import get_config_value

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_LOG_DIR = REPO_ROOT / "logs"

_SECRET_KEYS = ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY", "GEMINI_API_KEY")

_LOG_CONTEXT: contextvars.ContextVar[Mapping[str, Any]] = contextvars.ContextVar(
    "log_context", default={}
)


@contextlib.contextmanager
def bind_log_context(**fields: Any) -> Iterator[Mapping[str, Any]]:
    """Bind fields to every structured record emitted inside the block.

    Survives ``await`` points because asyncio tasks copy the current context.
    """
    token = _LOG_CONTEXT.set({**_LOG_CONTEXT.get(), **fields})
    try:
        yield _LOG_CONTEXT.get()
    finally:
        _LOG_CONTEXT.reset(token)


def current_log_context() -> dict[str, Any]:
    return dict(_LOG_CONTEXT.get())


def redact(value: Optional[str]) -> Optional[str]:
    """Mask any configured provider key that leaked into a log line."""
    if not isinstance(value, str) or not value:
        return value
    for key in _SECRET_KEYS:
        secret = os.getenv(key)
        if secret:
            value = value.replace(secret, "***")
    return value


def _utc_timestamp() -> str:
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Logger(Protocol):
    def info(self, event: str, **fields: Any) -> None: ...
    def warn(self, event: str, **fields: Any) -> None: ...
    def error(self, event: str, **fields: Any) -> None: ...


class NullLogger:
    def info(self, event: str, **fields): pass
    def warn(self, event: str, **fields): pass
    def error(self, event: str, **fields): pass


_SINK_LOCKS: dict[Path, threading.Lock] = {}
_SINK_LOCKS_GUARD = threading.Lock()


@dataclass
class _FileSink:
    """Appends lines to one file; writers of the same path share a lock."""

    path: Path
    _ready: bool = field(default=False, init=False)

    def _lock(self) -> threading.Lock:
        with _SINK_LOCKS_GUARD:
            return _SINK_LOCKS.setdefault(self.path, threading.Lock())

    def write(self, line: str) -> None:
        with self._lock():
            if not self._ready:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._ready = True
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")


class JsonStdoutLogger:
    def __init__(self, service: str = "pipeline", env: str = "dev", log_path: str | Path | None = None):
        self.service = service
        self.env = env
        self._sink = _FileSink(Path(log_path).expanduser()) if log_path else None

    def _record(self, level: str, event: str, **fields) -> dict[str, Any]:
        return {
            "ts": _utc_timestamp(),
            "level": level,
            "event": event,
            "service": self.service,
            "env": self.env,
            **_LOG_CONTEXT.get(),
            **fields,
        }

    def _emit(self, level: str, event: str, **fields):
        line = redact(json.dumps(self._record(level, event, **fields), default=str))
        print(line, file=sys.stderr if level == "error" else sys.stdout)
        if self._sink is not None:
            self._sink.write(line)

    def info(self, event, **fields): self._emit("info", event, **fields)
    def warn(self, event, **fields): self._emit("warn", event, **fields)
    def error(self, event, **fields): self._emit("error", event, **fields)


class JsonRepoLogger(JsonStdoutLogger):
    """JSON logger that also appends to ``<log_dir>/<service>.log``.

    OBS_LOG_FILE, when set, redirects every service to that one file
    (relative paths resolve against the repo root).
    """

    def __init__(
        self,
        service: str = "pipeline",
        env: str = "dev",
        log_dir: str | Path | None = None,
        filename: str | None = None,
    ):
        override = get_config_value("OBS_LOG_FILE")
        if override and not filename:
            path = Path(override).expanduser()
            if not path.is_absolute():
                path = REPO_ROOT / path
        else:
            base = Path(log_dir).expanduser() if log_dir else DEFAULT_LOG_DIR
            path = base / (filename or f"{service}.log")
        super().__init__(service=service, env=env, log_path=path)


@dataclass(slots=True)
class Span:
    """Logs ``<event>.start`` on entry and ``<event>.end`` / ``<event>.error`` on exit."""

    logger: Logger
    event: str
    fields: Mapping[str, Any]
    started: float = 0.0

    def _elapsed_ms(self) -> float:
        return round((time.perf_counter() - self.started) * 1000, 3)

    def __enter__(self):
        self.started = time.perf_counter()
        self.logger.info(f"{self.event}.start", **self.fields)
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc is None:
            self.logger.info(f"{self.event}.end", duration_ms=self._elapsed_ms(), **self.fields)
            return
        self.logger.error(
            f"{self.event}.error",
            duration_ms=self._elapsed_ms(),
            error_type=type(exc).__name__,
            error=str(exc),
            **self.fields,
        )


def with_span(
    event: str,
    *,
    logger_attr: str = "_logger",
    fields: Mapping[str, Any] | None = None,
    fields_fn: Callable[..., Mapping[str, Any]] | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Wrap a method (sync or async) in a `Span` using ``self.<logger_attr>``.

    Without a logger on ``self`` the span is silent.
    """

    def _span(args: tuple[Any, ...], kwargs: dict[str, Any]) -> Span:
        target = getattr(args[0], logger_attr, None) if args else None
        merged: dict[str, Any] = dict(fields or {})
        if fields_fn:
            merged.update(fields_fn(*args, **kwargs))
        return Span(target or NullLogger(), event, merged)

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        if inspect.iscoroutinefunction(fn):

            @functools.wraps(fn)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                with _span(args, kwargs):
                    return await fn(*args, **kwargs)

            return async_wrapper

        @functools.wraps(fn)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with _span(args, kwargs):
                return fn(*args, **kwargs)

        return sync_wrapper

    return decorator
