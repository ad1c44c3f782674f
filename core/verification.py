"""Deterministic checks that guard AI rewrites against unsupported claims.

A rewrite is accepted verbatim only when it adds no new numbers, no new
technology names and no ownership/leadership verbs that the original bullet
did not already carry. Otherwise the original text is restored and the
reasons are recorded in ``verifier_note``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping

from core.models import BulletCandidate, RewrittenBullet, VerifiedBullet

logger = logging.getLogger(__name__)

TECH_TERMS: tuple[str, ...] = (
    "react",
    "vue",
    "angular",
    "node",
    "python",
    "java",
    "go",
    "rust",
    "kubernetes",
    "docker",
    "aws",
    "azure",
    "gcp",
    "postgresql",
    "mongodb",
    "redis",
    "graphql",
    "rest",
)

SCOPE_WORDS: tuple[str, ...] = (
    "led",
    "owned",
    "architected",
    "managed",
    "directed",
    "spearheaded",
)

_DIGITS_RE = re.compile(r"\d+")


def _mentions(term: str, text: str) -> bool:
    return re.search(rf"(?<![a-z0-9]){re.escape(term)}(?![a-z0-9])", text) is not None


def find_issues(original: BulletCandidate, rewritten_text: str) -> list[str]:
    """Return human-readable reasons the rewrite cannot be trusted (empty if none)."""
    before = original.content.lower()
    after = rewritten_text.lower()
    issues: list[str] = []

    known_numbers = set(_DIGITS_RE.findall(before))
    new_numbers = list(dict.fromkeys(n for n in _DIGITS_RE.findall(after) if n not in known_numbers))
    if new_numbers:
        issues.append(f"New numbers added: {', '.join(new_numbers)}")

    declared = {t.lower() for t in (*original.skills, *original.tags)}
    for tech in TECH_TERMS:
        if _mentions(tech, after) and not _mentions(tech, before) and tech not in declared:
            issues.append(f"New tech mentioned: {tech}")

    for word in SCOPE_WORDS:
        if _mentions(word, after) and not _mentions(word, before):
            issues.append(f"Scope inflation: {word}")

    return issues


def verify_bullet(original: BulletCandidate, rewritten: RewrittenBullet) -> VerifiedBullet:
    issues = find_issues(original, rewritten.rewritten_text)
    if issues:
        logger.info("verify.reverted bullet=%s issues=%s", original.bullet_id, len(issues))
        return VerifiedBullet(
            bullet_id=original.bullet_id,
            text=original.content,
            verifier_note="Reverted due to: " + "; ".join(issues),
        )
    return VerifiedBullet(
        bullet_id=original.bullet_id, text=rewritten.rewritten_text, verifier_note=None
    )


def verify_bullets(
    originals: Iterable[BulletCandidate], rewrites: Mapping[str, RewrittenBullet]
) -> dict[str, VerifiedBullet]:
    """Verify every original that has a rewrite; originals without one are skipped."""
    verified: dict[str, VerifiedBullet] = {}
    for original in originals:
        rewritten = rewrites.get(original.bullet_id)
        if rewritten is None:
            continue
        verified[original.bullet_id] = verify_bullet(original, rewritten)
    return verified
