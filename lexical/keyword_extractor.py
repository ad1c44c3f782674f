"""Deterministic keyword, skill and tech-stack extraction from free text.

Everything here is a pure function: no I/O, no shared state, and no exceptions
for string input. Non-string input degrades to an empty result.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable

from core.models import ExtractedTerms
from lexical.skill_dictionary import SKILL_DICTIONARY

STOPWORDS = frozenset(
    """
    a an and are as at be by for from has he in is it its of on that the to was
    will with we you our their this have had or but not can all each other into
    up out if when where which who how about than then so some any no only own
    same just being both between through during before after above below such
    them these they
    """.split()
)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")

# Order matters: output follows pattern order, then occurrence order.
TECH_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\breact\.?js\b",
        r"\bvue\.?js\b",
        r"\bangular\b",
        r"\bnext\.?js\b",
        r"\bnode\.?js\b",
        r"\bexpress\.?js\b",
        r"\bnest\.?js\b",
        r"\btypescript\b",
        r"\bjavascript\b",
        r"\bkubernetes\b",
        r"\bk8s\b",
        r"\bdocker\b",
        r"\baws\b",
        r"\bazure\b",
        r"\bgcp\b",
        r"\bterraform\b",
        r"\bpostgres(?:ql)?\b",
        r"\bmysql\b",
        r"\bmongodb\b",
        r"\bredis\b",
        r"\belasticsearch\b",
        r"\bopensearch\b",
        r"\bkafka\b",
        r"\brabbitmq\b",
        r"\bgraphql\b",
        r"\bgrpc\b",
        r"\bmicroservices\b",
        r"\blambda\b",
        r"\bgithub\s*actions\b",
        r"\bjenkins\b",
        r"\bjest\b",
        r"\bcypress\b",
    )
)


def _tokens(text: str) -> list[str]:
    return _NON_ALNUM_RE.sub(" ", text.lower()).split()


def extract_keywords(text: str, max_keywords: int = 20) -> list[str]:
    """Return the most frequent non-stopword tokens, most frequent first.

    Tokens of length <= 2 are dropped. Ties keep first-seen order because
    ``Counter.most_common`` sorts stably over insertion order.
    """
    if not text or not isinstance(text, str):
        return []
    freq = Counter(t for t in _tokens(text) if len(t) > 2 and t not in STOPWORDS)
    return [word for word, _ in freq.most_common(max(max_keywords, 0))]


def extract_skills(text: str) -> list[str]:
    """Return dictionary skills mentioned anywhere in text (dictionary casing)."""
    if not text or not isinstance(text, str):
        return []
    lowered = text.lower()
    return [skill for skill in SKILL_DICTIONARY if skill.lower() in lowered]


def extract_tech_stack(text: str) -> list[str]:
    """Return lowercased technology mentions, de-duplicated in first-match order."""
    if not text or not isinstance(text, str):
        return []
    seen: dict[str, None] = {}
    for pattern in TECH_PATTERNS:
        for match in pattern.finditer(text):
            seen.setdefault(match.group(0).lower(), None)
    return list(seen)


def extract(text: str) -> ExtractedTerms:
    return ExtractedTerms(
        keywords=extract_keywords(text),
        skills=extract_skills(text),
        tech_stack=extract_tech_stack(text),
    )


def search_terms(terms: ExtractedTerms, *extra: Iterable[str]) -> list[str]:
    """Flatten extracted terms (plus any extra term lists) into a query list.

    Duplicates are dropped case-insensitively; the first spelling wins.
    """
    out: list[str] = []
    seen: set[str] = set()
    for group in (terms.keywords, terms.skills, terms.tech_stack, *extra):
        for term in group:
            cleaned = term.strip()
            key = cleaned.lower()
            if cleaned and key not in seen:
                seen.add(key)
                out.append(cleaned)
    return out
