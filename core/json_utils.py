from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def parse_json_object(raw: str, error_cls: type[Exception]) -> dict[str, Any]:
    """Extract a JSON object from raw model output, raising error_cls on failure.

    Accepts bare JSON, JSON wrapped in a markdown code fence, or prose around
    a single ``{...}`` block.
    """
    text = (raw or "").strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise error_cls("No JSON detected in model output") from exc
        try:
            data = json.loads(text[start : end + 1])
        except json.JSONDecodeError as exc2:
            raise error_cls("Malformed JSON in model output") from exc2
    if not isinstance(data, dict):
        raise error_cls("Expected JSON object in model output")
    return data


def str_list(value: Any) -> list[str]:
    """Coerce a model-provided field to a list of non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]
