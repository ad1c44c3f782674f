""" Asynchronous job description parser agent."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pydantic import ValidationError

from agents.prompts import build_jd_parser_messages
from core.config import get_default_model
from core.json_utils import parse_json_object, str_list
from core.llm_client import AsyncLLMClient
from core.models import ParsedJD

logger = logging.getLogger(__name__)


class JDParseError(RuntimeError):
    """Base error for the JD parser agent."""


class JDParseInvalidResponse(JDParseError):
    """Raised when the LLM output cannot be parsed or validated."""


_LIST_FIELDS = ("required_skills", "nice_to_have", "responsibilities", "keywords")


@dataclass(slots=True)
class JDParserAgent:
    """Turns raw job description text into a ParsedJD via one LLM call."""

    llm: AsyncLLMClient
    model: str = field(default_factory=get_default_model)

    async def parse(self, job_description: str) -> ParsedJD:
        jd = (job_description or "").strip()
        if not jd:
            raise JDParseError("job_description must be a non-empty string")

        logger.info("JDParserAgent: parsing JD (%d chars)", len(jd))
        raw = await self.llm.chat(
            messages=build_jd_parser_messages(jd),
            model=self.model,
            temperature=0.1,
        )
        logger.debug("JDParserAgent: raw LLM output: %s", raw[:500])

        data = parse_json_object(raw, JDParseInvalidResponse)
        for key in _LIST_FIELDS:
            data[key] = str_list(data.get(key))
        try:
            result = ParsedJD.model_validate(data)
        except ValidationError as e:
            logger.exception("JDParserAgent: validation failed")
            raise JDParseInvalidResponse(f"Validation failed: {e}") from e

        logger.info(
            "JDParserAgent: success position=%s company=%s required=%d",
            result.job_position,
            result.company_name,
            len(result.required_skills),
        )
        return result
