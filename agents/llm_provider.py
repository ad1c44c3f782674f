"""LLM-backed AIProvider composed from the parser, rewriter and selector agents."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from agents.bullet_rewriter import BulletRewriterAgent
from agents.content_selector import ContentSelectorAgent
from agents.jd_parser import JDParserAgent
from core.config import get_default_model
from core.llm_client import AsyncLLMClient
from core.llm_factory import get_async_llm_client
from core.models import BulletInput, ContentSelection, ParsedJD, ProfileData, RewrittenBullet
from core.obs import Logger


@dataclass(slots=True)
class LLMAIProvider:
    """Implements AIProvider on top of any AsyncLLMClient (OpenAI, Claude, Gemini)."""

    llm: AsyncLLMClient
    model: str = field(default_factory=get_default_model)
    _parser: JDParserAgent = field(init=False)
    _rewriter: BulletRewriterAgent = field(init=False)
    _selector: ContentSelectorAgent = field(init=False)

    def __post_init__(self) -> None:
        self._parser = JDParserAgent(llm=self.llm, model=self.model)
        self._rewriter = BulletRewriterAgent(llm=self.llm, model=self.model)
        self._selector = ContentSelectorAgent(llm=self.llm, model=self.model)

    async def parse_job_description(self, job_description: str) -> ParsedJD:
        return await self._parser.parse(job_description)

    async def rewrite_bullet(self, bullet: BulletInput, parsed_jd: ParsedJD) -> RewrittenBullet:
        return await self._rewriter.rewrite(bullet, parsed_jd)

    async def select_relevant_content(
        self, profile: ProfileData, parsed_jd: ParsedJD
    ) -> ContentSelection:
        return await self._selector.select(profile, parsed_jd)


def build_ai_provider(provider: str | None = None, logger: Optional[Logger] = None) -> LLMAIProvider:
    """Provider named by LLM_PROVIDER (or ``provider``) with the configured LLM_MODEL."""
    return LLMAIProvider(llm=get_async_llm_client(logger=logger, provider=provider))
