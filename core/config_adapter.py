"""Layered configuration sources: environment, .env file, AWS Secrets Manager.

A ``ConfigAdapter`` asks each source in turn and returns the first value
found. Typed getters (`get_int`, `get_float`, `get_bool`) fall back to the
default when a key is unset and raise ``ValueError`` when it is set to
something unparsable, so a typo in a pipeline knob fails loudly.
"""

from __future__ import annotations

import base64
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
import json
import os
from pathlib import Path
from typing import Any, Protocol, TypeVar

try:
    import boto3
except ImportError:  # pragma: no cover - optional dependency for local usage
    boto3 = None

T = TypeVar("T")

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


class ConfigSource(Protocol):
    def get(self, key: str) -> str | None: ...


@dataclass(slots=True)
class EnvConfigSource:
    """Process environment, optionally under a key prefix."""

    prefix: str | None = None

    def get(self, key: str) -> str | None:
        return os.getenv(f"{self.prefix or ''}{key}")


@dataclass(slots=True)
class MappingConfigSource:
    """Fixed key/value overrides (CLI flags, tests)."""

    values: Mapping[str, Any]

    def get(self, key: str) -> str | None:
        value = self.values.get(key)
        return None if value is None else str(value)


@dataclass
class _LazySource:
    """Fetches all of its values on first lookup and serves them from memory."""

    _values: dict[str, str] | None = field(default=None, init=False, repr=False)

    def _fetch(self) -> dict[str, str]:
        raise NotImplementedError

    def get(self, key: str) -> str | None:
        if self._values is None:
            self._values = self._fetch()
        return self._values.get(key)


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def parse_dotenv_line(raw_line: str) -> tuple[str, str] | None:
    """Parse one ``KEY=VALUE`` line; comments, blanks and junk yield None.

    Accepts an ``export`` prefix and strips a trailing `` # comment`` from
    unquoted values.
    """
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, _, value = line.partition("=")
    value = value.strip()
    if value[:1] not in ("'", '"') and " #" in value:
        value = value.split(" #", 1)[0].rstrip()
    return key.strip(), _unquote(value)


@dataclass
class DotEnvConfigSource(_LazySource):
    """KEY=VALUE lines from a .env file; a missing file is an empty source."""

    path: Path = Path(".env")
    encoding: str = "utf-8"

    def _fetch(self) -> dict[str, str]:
        try:
            lines = Path(self.path).read_text(encoding=self.encoding).splitlines()
        except FileNotFoundError:
            return {}
        return dict(pair for pair in map(parse_dotenv_line, lines) if pair)


@dataclass
class SecretsManagerConfigSource(_LazySource):
    """Keys of one JSON secret in AWS Secrets Manager (needs the ``aws`` extra).

    A secret that is not a JSON object is exposed whole as SECRET_STRING.
    """

    secret_id: str = ""
    region_name: str | None = None
    profile_name: str | None = None

    def _client(self) -> Any:
        if boto3 is None:
            raise RuntimeError("boto3 is required for SecretsManagerConfigSource")
        session = boto3.session.Session(profile_name=self.profile_name) if self.profile_name else boto3.session.Session()
        return session.client("secretsmanager", region_name=self.region_name)

    def _secret_string(self) -> str | None:
        resp = self._client().get_secret_value(SecretId=self.secret_id)
        if resp.get("SecretString"):
            return resp["SecretString"]
        if resp.get("SecretBinary"):
            return base64.b64decode(resp["SecretBinary"]).decode("utf-8")
        return None

    def _fetch(self) -> dict[str, str]:
        raw = self._secret_string()
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return {"SECRET_STRING": raw}
        if isinstance(parsed, dict):
            return {k: str(v) for k, v in parsed.items()}
        return {"SECRET_STRING": str(parsed)}


def _parse_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(raw)


@dataclass(slots=True)
class ConfigAdapter:
    """First source with a value wins."""

    sources: tuple[ConfigSource, ...]

    def get(self, key: str, default: str | None = None) -> str | None:
        for source in self.sources:
            value = source.get(key)
            if value is not None:
                return value
        return default

    def _typed(self, key: str, default: T, parse: Callable[[str], T], kind: str) -> T:
        raw = (self.get(key) or "").strip()
        if not raw:
            return default
        try:
            return parse(raw)
        except ValueError as exc:
            raise ValueError(f"{key} must be {kind}, got {raw!r}") from exc

    def get_int(self, key: str, default: int) -> int:
        return self._typed(key, default, int, "an integer")

    def get_float(self, key: str, default: float) -> float:
        return self._typed(key, default, float, "a number")

    def get_bool(self, key: str, default: bool = False) -> bool:
        return self._typed(key, default, _parse_bool, "a boolean")
