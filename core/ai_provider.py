"""Capability contract for the AI collaborator used by the full pipeline strategy."""

from __future__ import annotations

from typing import Protocol

from core.models import BulletInput, ContentSelection, ParsedJD, ProfileData, RewrittenBullet


class AIProvider(Protocol):
    """One contract, interchangeable providers; chosen at construction, not per call."""

    async def parse_job_description(self, job_description: str) -> ParsedJD:
        """Extract skills, responsibilities, keywords and job metadata."""

    async def rewrite_bullet(self, bullet: BulletInput, parsed_jd: ParsedJD) -> RewrittenBullet:
        """Rephrase one bullet toward the job without adding new claims."""

    async def select_relevant_content(
        self, profile: ProfileData, parsed_jd: ParsedJD
    ) -> ContentSelection:
        """Pick the profile experiences/projects/bullets most relevant to the job."""
