"""Deterministic text utilities: keyword extraction and bullet selection."""

from .bullet_selector import (  # noqa: F401
    deduplicate_by_similarity,
    group_by_parent,
    select,
    token_overlap,
)
from .keyword_extractor import (  # noqa: F401
    extract,
    extract_keywords,
    extract_skills,
    extract_tech_stack,
    search_terms,
)
from .skill_dictionary import SKILL_DICTIONARY  # noqa: F401
