"""Candidate bullet retrieval.

The production search index is an external collaborator; ``Retriever`` is
its contract. ``InMemoryBulletRetriever`` scores a stored profile's bullets
by weighted term overlap so the pipeline runs end-to-end without a search
cluster (CLI, tests).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Protocol, Sequence

from core.models import BulletCandidate, ProfileBullet
from core.profile_store import ProfileNotFoundError, ProfileRepository

logger = logging.getLogger(__name__)

CONTENT_WEIGHT = 2.0
PARENT_TITLE_WEIGHT = 1.0
SKILLS_WEIGHT = 1.5

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class Retriever(Protocol):
    async def query_bullets(
        self, user_id: str, search_terms: Sequence[str], size: int
    ) -> list[BulletCandidate]:
        """Return up to `size` candidates, best first."""


def _tokens(text: str) -> set[str]:
    return set(_TOKEN_RE.findall(text.lower()))


@dataclass
class InMemoryBulletRetriever:
    profiles: ProfileRepository

    def _score(self, terms: set[str], bullet: ProfileBullet, title: str, skills: Sequence[str]) -> float:
        score = CONTENT_WEIGHT * len(terms & _tokens(bullet.content))
        score += PARENT_TITLE_WEIGHT * len(terms & _tokens(title))
        score += SKILLS_WEIGHT * len(terms & _tokens(" ".join(skills)))
        return score

    async def query_bullets(
        self, user_id: str, search_terms: Sequence[str], size: int
    ) -> list[BulletCandidate]:
        try:
            profile = self.profiles.load_profile(user_id)
        except ProfileNotFoundError:
            logger.info("retrieval.no_profile user=%s", user_id)
            return []

        terms: set[str] = set()
        for term in search_terms:
            terms |= _tokens(term)
        if not terms:
            return []

        hits: list[BulletCandidate] = []
        for exp in profile.experiences:
            for b in exp.bullets:
                score = self._score(terms, b, exp.title, b.skills)
                if score > 0:
                    hits.append(
                        BulletCandidate(
                            bullet_id=b.id,
                            content=b.content,
                            score=score,
                            parent_id=exp.id,
                            parent_type="experience",
                            start_date=exp.start_date,
                            end_date=exp.end_date,
                            tags=tuple(b.tags),
                            skills=tuple(b.skills),
                        )
                    )
        for proj in profile.projects:
            for b in proj.bullets:
                skills = [*b.skills, *proj.skills]
                score = self._score(terms, b, proj.name, skills)
                if score > 0:
                    hits.append(
                        BulletCandidate(
                            bullet_id=b.id,
                            content=b.content,
                            score=score,
                            parent_id=proj.id,
                            parent_type="project",
                            start_date=proj.date,
                            tags=tuple(b.tags),
                            skills=tuple(dict.fromkeys(skills)),
                        )
                    )

        hits.sort(key=lambda h: h.score, reverse=True)
        logger.info("retrieval.query user=%s terms=%d hits=%d", user_id, len(terms), len(hits))
        return hits[: max(size, 0)]
