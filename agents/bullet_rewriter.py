""" Asynchronous bullet rewriter agent."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from agents.prompts import build_rewriter_messages
from core.config import get_default_model
from core.json_utils import parse_json_object, str_list
from core.llm_client import AsyncLLMClient
from core.models import BulletInput, ParsedJD, RewrittenBullet

logger = logging.getLogger(__name__)


class BulletRewriteError(RuntimeError):
    """Raised when a bullet rewrite cannot be produced."""


@dataclass(slots=True)
class BulletRewriterAgent:
    """Rephrases one bullet toward a parsed job description.

    Evidence always points at the source bullet; an empty rewrite falls back
    to the original content.
    """

    llm: AsyncLLMClient
    model: str = field(default_factory=get_default_model)
    temperature: float = 0.3

    async def rewrite(self, bullet: BulletInput, jd: ParsedJD) -> RewrittenBullet:
        raw = await self.llm.chat(
            messages=build_rewriter_messages(bullet, jd),
            model=self.model,
            temperature=self.temperature,
        )
        data = parse_json_object(raw, BulletRewriteError)
        text = data.get("rewrittenText")
        if not isinstance(text, str) or not text.strip():
            text = bullet.content
        logger.debug("BulletRewriterAgent: bullet=%s rewritten_len=%d", bullet.id, len(text))
        return RewrittenBullet(
            bullet_id=bullet.id,
            rewritten_text=text.strip(),
            evidence_bullet_ids=[bullet.id],
            risk_flags=str_list(data.get("riskFlags")),
        )
