"""Lenient decoding of tool-call arguments returned by chat models."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Mapping, Optional, Union

logger = logging.getLogger("assistant.common.llm_utils")

_FENCE_EDGES = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def _as_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def parse_tool_arguments(raw: Union[str, Mapping[str, Any], None]) -> Dict[str, Any]:
    """Turn a tool call's arguments into a dict.

    OpenAI sends arguments as a JSON string, which models sometimes wrap in
    code fences or surround with prose; Anthropic sends an already decoded
    mapping. Candidates are tried as-is, unfenced, then as the outermost
    {...} span. Anything that is not a JSON object yields {}.
    """
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)

    text = raw.strip()
    if not text:
        return {}

    candidates = [text, _FENCE_EDGES.sub("", text)]
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        parsed = _as_object(candidate)
        if parsed is not None:
            return parsed

    logger.debug("Ignoring unparseable tool arguments: %.80s", text)
    return {}
