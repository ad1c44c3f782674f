"""Candidate bullet selection: per-parent caps, near-duplicate removal, recency order."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from core.models import BulletCandidate, SelectedBullet, SelectionConstraints

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def _token_set(text: str) -> set[str]:
    return set(_NON_ALNUM_RE.sub(" ", text.lower()).split())


def token_overlap(a: str, b: str) -> float:
    """Jaccard similarity of the two texts' token sets; 0.0 when both are empty."""
    tokens_a = _token_set(a)
    tokens_b = _token_set(b)
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def group_by_parent(bullets: Iterable[BulletCandidate]) -> dict[str, list[BulletCandidate]]:
    """Partition bullets by parent_id, keeping input order inside each group."""
    groups: dict[str, list[BulletCandidate]] = {}
    for bullet in bullets:
        groups.setdefault(bullet.parent_id, []).append(bullet)
    return groups


def deduplicate_by_similarity(
    bullets: Sequence[BulletCandidate], threshold: float
) -> list[BulletCandidate]:
    """Greedy filter: keep a bullet only if it is not too similar to any kept one.

    Order-sensitive; callers pass bullets best-first so the stronger of two
    near-duplicates survives.
    """
    kept: list[BulletCandidate] = []
    for bullet in bullets:
        if all(token_overlap(bullet.content, other.content) <= threshold for other in kept):
            kept.append(bullet)
    return kept


def select(
    candidates: Sequence[BulletCandidate], constraints: SelectionConstraints
) -> list[SelectedBullet]:
    """Pick the final bullets from retrieved candidates.

    Steps: cap each parent at its best-scoring ``max_bullets_per_parent``,
    drop near-duplicates, order by start date (newest first) then score, and
    truncate to ``target_count.max``. ``target_count.min`` is advisory only.
    """
    if not candidates:
        return []

    per_parent: list[BulletCandidate] = []
    for group in group_by_parent(candidates).values():
        ranked = sorted(group, key=lambda b: b.score, reverse=True)
        per_parent.extend(ranked[: constraints.max_bullets_per_parent])

    unique = deduplicate_by_similarity(per_parent, constraints.similarity_threshold)
    ordered = sorted(unique, key=lambda b: (b.start_date or "", b.score), reverse=True)
    return ordered[: constraints.target_count.max]
