"""Request-body normalisation for topic turns.

Clients send one of three shapes:

- ``{"message": "..."}`` (or ``{"content": "...", "sectionId": ...}``)
- ``{"messages": [{"role": ..., "content": ...}, ...]}``, last user entry wins
- a direct field update: ``{"<topicKey>.<field>": value}`` or ``{<dataKey>: {...}}``
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..domain.errors import ValidationError
from ..domain.topics import INVALID_SECTION_KEYS, TopicSpec, section_key


HELP_MARKER = "needs help"
_HELP_WORDS = re.compile(r"\b(?:help|examples?|not sure|guidance)\b", re.IGNORECASE)


def detect_help_request(text: Optional[str]) -> bool:
    return bool(text) and bool(_HELP_WORDS.search(text or ""))


@dataclass
class NormalizedTurn:
    message_text: Optional[str] = None
    section_id: Optional[str] = None
    is_help_request: bool = False
    finalizing: bool = False
    direct_updates: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_direct_update(self) -> bool:
        return self.message_text is None and bool(self.direct_updates)


def _clean_section(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in INVALID_SECTION_KEYS:
        return None
    return text


def _message_text(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("content")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _from_messages(messages: List[Any]) -> tuple:
    text = None
    marker = False
    for entry in messages:
        if not isinstance(entry, dict):
            continue
        role = entry.get("role")
        content = entry.get("content")
        if role == "system" and isinstance(content, str) and HELP_MARKER in content:
            marker = True
        if role == "user" and isinstance(content, str) and content.strip():
            text = content.strip()
    return text, marker


def _direct_updates(topic: TopicSpec, body: Dict[str, Any]) -> Dict[str, Any]:
    prefixes = {topic.text_key, topic.data_key, topic.stem}
    updates: Dict[str, Any] = {}
    nested = body.get(topic.data_key)
    if isinstance(nested, dict):
        updates.update(nested)
    for key, value in body.items():
        if not isinstance(key, str) or "." not in key:
            continue
        prefix, _, name = key.partition(".")
        if prefix in prefixes and name:
            updates[name] = value
    if topic.sectioned:
        if any(_clean_section(name) is None for name in updates):
            raise ValidationError("Invalid section keys in update")
        return {section_key(name): value for name, value in updates.items() if isinstance(value, str)}
    known = set(topic.field_names)
    return {name: value for name, value in updates.items() if name in known}


def normalize_request(topic: TopicSpec, body: Any) -> NormalizedTurn:
    if not isinstance(body, dict):
        raise ValidationError("Invalid request: expected a JSON object")

    section_id = _clean_section(body.get("sectionId", body.get("section_id")))
    explicit_help = bool(body.get("isHelpRequest") or body.get("isHelp"))
    finalizing = bool(body.get("finalizing"))

    text = _message_text(body.get("message")) or _message_text(body.get("content"))
    marker = False
    if text is None and isinstance(body.get("messages"), list):
        text, marker = _from_messages(body["messages"])

    if text is None:
        updates = _direct_updates(topic, body)
        if updates:
            return NormalizedTurn(section_id=section_id, finalizing=finalizing, direct_updates=updates)
        if "message" in body or "messages" in body or "content" in body:
            raise ValidationError("Invalid request: empty message content")
        raise ValidationError("Invalid request: missing message or messages array")

    if topic.sectioned and not section_id:
        raise ValidationError("Invalid request: sectionId is required")

    return NormalizedTurn(
        message_text=text,
        section_id=section_id,
        is_help_request=explicit_help or marker or detect_help_request(text),
        finalizing=finalizing,
    )
