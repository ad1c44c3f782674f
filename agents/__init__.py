""" Agents package initialization."""

from .bullet_rewriter import BulletRewriteError, BulletRewriterAgent  # noqa: F401
from .content_selector import ContentSelectionError, ContentSelectorAgent  # noqa: F401
from .jd_parser import (  # noqa: F401
    JDParseError,
    JDParseInvalidResponse,
    JDParserAgent,
)
from .llm_provider import LLMAIProvider, build_ai_provider  # noqa: F401
