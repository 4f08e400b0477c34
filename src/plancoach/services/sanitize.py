"""Text post-processing for assistant replies.

``sanitize_reply`` strips code and JSON-looking fragments from conversational
replies before they reach the user. ``parse_json_object`` locates and decodes
the JSON object an extraction run returns, tolerating prose or fences around it.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict

from ..domain.errors import ExtractionFailure


MIN_SANITIZED_LENGTH = 20

_FENCED_LANG = re.compile(r"```(?:json|javascript|typescript|js|ts)[\s\S]*?```")
_FENCED_ANY = re.compile(r"```[\s\S]*?```")
_INLINE_CODE = re.compile(r"`[^`]*`")
_BRACED = re.compile(r"\{[\s\S]*?\}")
_STRAY_FENCE = re.compile(r"```")
_BLANK_RUN = re.compile(r"\n\s*\n\s*\n")
_JSON_STRING_PROP = re.compile(r'^\s*"[^"]+"\s*:\s*"[^"]*"\s*,?\s*$', re.MULTILINE)
_JSON_ARRAY_PROP = re.compile(r'^\s*"[^"]+"\s*:\s*\[[^\]]*\]\s*,?\s*$', re.MULTILINE)
_BRACKET_LINE = re.compile(r"^\s*[\[\]{}]\s*$", re.MULTILINE)
_QUOTED_LINE = re.compile(r'^\s*".*",?\s*$', re.MULTILINE)


def sanitize_reply(text: str) -> str:
    """Remove code fences, inline code and JSON-looking lines from a reply.

    Falls back to the original text when cleaning leaves fewer than
    ``MIN_SANITIZED_LENGTH`` characters, so a substantive reply is never emptied.
    """
    if not text:
        return text or ""
    cleaned = _FENCED_LANG.sub("", text)
    cleaned = _FENCED_ANY.sub("", cleaned)
    cleaned = _INLINE_CODE.sub("", cleaned)
    cleaned = _BRACED.sub("", cleaned)
    cleaned = _STRAY_FENCE.sub("", cleaned)
    cleaned = _BLANK_RUN.sub("\n\n", cleaned)
    cleaned = _JSON_STRING_PROP.sub("", cleaned)
    cleaned = _JSON_ARRAY_PROP.sub("", cleaned)
    cleaned = _BRACKET_LINE.sub("", cleaned)
    cleaned = _QUOTED_LINE.sub("", cleaned)
    cleaned = _BLANK_RUN.sub("\n\n", cleaned).strip()
    if len(cleaned) < MIN_SANITIZED_LENGTH:
        return text
    return cleaned


def parse_json_object(text: str) -> Dict[str, Any]:
    """Decode the span between the first ``{`` and the last ``}``."""
    if not text:
        raise ExtractionFailure("empty_reply", "Extraction reply was empty")
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ExtractionFailure("no_json", "No JSON object found in extraction reply")
    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ExtractionFailure("invalid_json", f"Extraction reply is not valid JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise ExtractionFailure("not_an_object", "Extraction reply is not a JSON object")
    return data
