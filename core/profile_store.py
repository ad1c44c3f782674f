"""Profile repository: where a user's stored work history is loaded from."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Protocol

from core.models import ProfileData


class ProfileNotFoundError(RuntimeError):
    """Raised when no profile is stored for a user."""


class ProfileRepository(Protocol):
    def load_profile(self, user_id: str) -> ProfileData:
        """Return the full profile for user_id or raise ProfileNotFoundError."""


@dataclass
class InMemoryProfileRepository:
    profiles: Dict[str, ProfileData] = field(default_factory=dict)

    def put(self, user_id: str, profile: ProfileData) -> None:
        self.profiles[user_id] = profile

    def load_profile(self, user_id: str) -> ProfileData:
        try:
            return self.profiles[user_id]
        except KeyError as exc:
            raise ProfileNotFoundError(f"No profile for user {user_id}") from exc


@dataclass
class JsonFileProfileRepository:
    """Reads <root>/<user_id>.json (camelCase wire form)."""

    root: Path

    def load_profile(self, user_id: str) -> ProfileData:
        path = Path(self.root) / f"{user_id}.json"
        if not path.exists():
            raise ProfileNotFoundError(f"No profile for user {user_id} at {path}")
        with path.open("r", encoding="utf-8") as f:
            return ProfileData.model_validate(json.load(f))
