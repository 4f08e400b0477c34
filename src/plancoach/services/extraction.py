"""Structured-data extraction from a topic conversation.

Two strategies:

- ``side_thread``: copy the transcript into a fresh thread together with a
  structuring prompt, so the user-visible conversation gains nothing.
- ``same_thread``: ask on the conversation thread itself, then delete the
  request and response messages again.

Whatever happens remotely, ``ExtractionPass.extract`` returns a well-shaped
object. Failures resolve to the topic's default object and are flagged on the
result rather than raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..domain.errors import ExtractionFailure, GatewayError
from ..domain.topics import EXTRACTION_ERROR, NOT_AVAILABLE, FieldSpec, TopicSpec, section_key, section_title
from ..observability.metrics import EXTRACTION_FALLBACKS
from ..security.rate_limit import RequestSpacer
from .assistant_gateway import AssistantGateway, ThreadMessage
from .render import is_blank, to_number
from .run_poller import RunPoller
from .sanitize import parse_json_object, sanitize_reply
from .turn import latest_assistant_message


LOG = logging.getLogger("plancoach.assistant")

SIDE_THREAD = "side_thread"
SAME_THREAD = "same_thread"

EXTRACTION_INSTRUCTIONS = (
    "You convert business-planning conversations into structured data. "
    "Return ONLY the JSON object, with no explanation, markdown or code fences. "
    "Do not hallucinate: leave out any field the user has not actually discussed."
)

_KIND_HINTS = {
    "text": "string",
    "list": "array of strings",
    "money": "number (US dollars, no currency symbol)",
}

_MIN_SECTION_SUMMARY = 20


@dataclass
class ExtractionResult:
    data: Dict[str, Any]
    fallback: bool = False
    reason: Optional[str] = None


def _field_hint(spec: FieldSpec) -> str:
    if spec.kind == "table":
        cols = ", ".join(
            f'"{c.name}": {"number" if c.kind in ("money", "percent", "number") else "string"}' for c in spec.columns
        )
        return f'- "{spec.name}": array of objects {{{cols}}} ({spec.label})'
    return f'- "{spec.name}": {_KIND_HINTS.get(spec.kind, "string")} ({spec.label})'


def build_extraction_prompt(topic: TopicSpec, section_id: Optional[str] = None) -> str:
    if topic.sectioned:
        key = section_key(section_id)
        return (
            f"Summarise everything the user has told us about the '{section_title(section_id or '')}' "
            f"section of their {topic.label} in a few clear sentences written for a business plan. "
            f'Respond with JSON only, in the form {{"{key}": "<summary>"}}.'
        )
    lines = [
        f"Based on our conversation so far, extract the {topic.label} information as a JSON object "
        "with these fields:",
        *(_field_hint(spec) for spec in topic.fields),
        "Only include fields that we've actually discussed. Respond with valid JSON only.",
    ]
    return "\n".join(lines)


def _coerce_text(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, list):
        parts = [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]
        return "; ".join(parts) or None
    if isinstance(value, str):
        return value.strip() or None
    return None


def _coerce_list(value: Any) -> Optional[List[Any]]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return None
    out: List[Any] = []
    for item in value:
        if isinstance(item, str) and item.strip():
            out.append(item.strip())
        elif isinstance(item, (int, float)) and not isinstance(item, bool):
            out.append(str(item))
        elif isinstance(item, dict) and item:
            out.append(item)
    return out or None


def _coerce_money(value: Any) -> Any:
    number = to_number(value)
    if number is not None:
        return int(number) if number == int(number) else number
    return _coerce_text(value)


def _coerce_table(spec: FieldSpec, value: Any) -> Optional[List[Dict[str, Any]]]:
    if not isinstance(value, list):
        return None
    rows = []
    for item in value:
        if not isinstance(item, dict):
            continue
        row: Dict[str, Any] = {}
        for col in spec.columns:
            cell = item.get(col.name)
            if is_blank(cell):
                continue
            row[col.name] = _coerce_money(cell) if col.kind in ("money", "percent", "number") else _coerce_text(cell)
        if row:
            rows.append(row)
    return rows or None


def coerce_topic_data(topic: TopicSpec, raw: Dict[str, Any], section_id: Optional[str] = None) -> Dict[str, Any]:
    """Keep only schema fields, in their declared shapes; drop blanks.

    Absent fields mean "not discussed yet" and are simply left out.
    """
    if topic.sectioned:
        key = section_key(section_id)
        value = raw.get(key)
        if is_blank(value):
            value = raw.get("summary") or raw.get("content")
        text = _coerce_text(value)
        return {key: text} if key and text and not is_blank(text) else {}

    out: Dict[str, Any] = {}
    for spec in topic.fields:
        if spec.name not in raw or is_blank(raw.get(spec.name)):
            continue
        value = raw[spec.name]
        if spec.kind == "list":
            coerced = _coerce_list(value)
        elif spec.kind == "table":
            coerced = _coerce_table(spec, value)
        elif spec.kind == "money":
            coerced = _coerce_money(value)
        else:
            coerced = _coerce_text(value)
        if coerced is not None and not is_blank(coerced):
            out[spec.name] = coerced
    return out


def format_transcript(messages) -> str:
    lines = []
    for msg in messages:
        if not msg.text:
            continue
        lines.append(f"{msg.role.upper()}: {msg.text.strip()}")
    return "\n\n".join(lines)


class ExtractionPass:
    def __init__(self, gateway: AssistantGateway, poller: RunPoller, spacer: RequestSpacer) -> None:
        self._gateway = gateway
        self._poller = poller
        self._spacer = spacer

    def extract(
        self,
        topic: TopicSpec,
        *,
        thread_id: str,
        assistant_id: Optional[str],
        strategy: str = SIDE_THREAD,
        section_id: Optional[str] = None,
    ) -> ExtractionResult:
        try:
            if not assistant_id:
                raise ExtractionFailure("not_configured", "No extraction assistant configured")
            prompt = build_extraction_prompt(topic, section_id)
            if strategy == SAME_THREAD:
                reply = self._same_thread(thread_id, assistant_id, prompt)
            else:
                reply = self._side_thread(thread_id, assistant_id, prompt)
            data = self._parse(topic, reply, section_id)
        except ExtractionFailure as exc:
            return self._fallback(topic, section_id, exc.reason, NOT_AVAILABLE)
        except GatewayError as exc:
            LOG.warning("extraction_run_failed", extra={"thread_id": thread_id, "err": str(exc)})
            return self._fallback(topic, section_id, type(exc).__name__, EXTRACTION_ERROR)
        return ExtractionResult(data=data)

    def _parse(self, topic: TopicSpec, reply: str, section_id: Optional[str]) -> Dict[str, Any]:
        try:
            raw = parse_json_object(reply)
        except ExtractionFailure:
            if not topic.sectioned:
                raise
            # Section summaries are prose at heart; accept a plain-text answer.
            summary = sanitize_reply(reply or "").strip()
            if len(summary) < _MIN_SECTION_SUMMARY:
                raise
            raw = {section_key(section_id): summary}
        data = coerce_topic_data(topic, raw, section_id)
        if not data:
            raise ExtractionFailure("empty", "Extraction produced no usable fields")
        return data

    def _side_thread(self, thread_id: str, assistant_id: str, prompt: str) -> str:
        self._poller.await_idle(thread_id)
        transcript = format_transcript(self._gateway.list_messages(thread_id, order="asc"))
        if not transcript:
            raise ExtractionFailure("empty_transcript", "Conversation has no messages yet")
        side_thread = self._gateway.create_thread()
        self._spacer.wait(assistant_id)
        self._gateway.append_message(
            side_thread,
            "user",
            f"Here is a conversation between a business planning assistant and a user:\n\n{transcript}\n\n{prompt}",
        )
        run_id = self._gateway.start_run(side_thread, assistant_id, EXTRACTION_INSTRUCTIONS)
        self._poller.wait(side_thread, run_id, purpose="extraction")
        return latest_assistant_message(self._gateway, side_thread, run_id).text or ""

    def _same_thread(self, thread_id: str, assistant_id: str, prompt: str) -> str:
        self._poller.await_idle(thread_id)
        self._spacer.wait(assistant_id)
        request_id = self._gateway.append_message(thread_id, "user", prompt)
        reply: Optional[ThreadMessage] = None
        try:
            run_id = self._gateway.start_run(thread_id, assistant_id, EXTRACTION_INSTRUCTIONS)
            self._poller.wait(thread_id, run_id, purpose="extraction")
            reply = latest_assistant_message(self._gateway, thread_id, run_id)
        finally:
            self._remove(thread_id, [request_id, reply.id if reply else None])
        return reply.text or ""

    def _remove(self, thread_id: str, message_ids: List[Optional[str]]) -> None:
        for message_id in message_ids:
            if not message_id:
                continue
            try:
                self._gateway.delete_message(thread_id, message_id)
            except GatewayError as exc:
                LOG.warning(
                    "extraction_cleanup_failed",
                    extra={"thread_id": thread_id, "message_id": message_id, "err": str(exc)},
                )

    def _fallback(self, topic: TopicSpec, section_id: Optional[str], reason: str, marker: str) -> ExtractionResult:
        EXTRACTION_FALLBACKS.labels(topic=topic.slug, reason=reason).inc()
        LOG.info("extraction_fallback", extra={"topic": topic.slug, "reason": reason})
        return ExtractionResult(data=topic.default_data(marker, section_id=section_id), fallback=True, reason=reason)
