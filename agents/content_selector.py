""" Asynchronous content selector agent: picks profile bullets relevant to a job."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pydantic import ValidationError

from agents.prompts import build_selector_messages
from core.config import get_default_model
from core.json_utils import parse_json_object
from core.llm_client import AsyncLLMClient
from core.models import ContentSelection, ParsedJD, ProfileData

logger = logging.getLogger(__name__)


class ContentSelectionError(RuntimeError):
    """Raised when the selection output cannot be parsed or validated."""


def _known_ids_only(selection: ContentSelection, profile: ProfileData) -> ContentSelection:
    """Drop parents and bullet ids the model invented."""
    exp_bullets = {e.id: {b.id for b in e.bullets} for e in profile.experiences}
    proj_bullets = {p.id: {b.id for b in p.bullets} for p in profile.projects}
    edu_ids = {e.id for e in profile.education}

    experiences = [
        item.model_copy(update={"bullet_ids": [b for b in item.bullet_ids if b in exp_bullets[item.id]]})
        for item in selection.experiences
        if item.id in exp_bullets
    ]
    projects = [
        item.model_copy(update={"bullet_ids": [b for b in item.bullet_ids if b in proj_bullets[item.id]]})
        for item in selection.projects
        if item.id in proj_bullets
    ]
    education = [item for item in selection.education if item.id in edu_ids]
    return ContentSelection(experiences=experiences, projects=projects, education=education)


@dataclass(slots=True)
class ContentSelectorAgent:
    llm: AsyncLLMClient
    model: str = field(default_factory=get_default_model)

    async def select(self, profile: ProfileData, jd: ParsedJD) -> ContentSelection:
        raw = await self.llm.chat(
            messages=build_selector_messages(profile, jd),
            model=self.model,
            temperature=0.2,
        )
        data = parse_json_object(raw, ContentSelectionError)
        try:
            selection = ContentSelection.model_validate(
                {k: data.get(k) or [] for k in ("experiences", "projects", "education")}
            )
        except ValidationError as e:
            logger.exception("ContentSelectorAgent: validation failed")
            raise ContentSelectionError(f"Validation failed: {e}") from e

        selection = _known_ids_only(selection, profile)
        logger.info(
            "ContentSelectorAgent: selected experiences=%d projects=%d",
            len(selection.experiences),
            len(selection.projects),
        )
        return selection
