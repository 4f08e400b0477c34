"""Markdown rendering of extracted topic data.

Headings per populated field, bullets for list fields and tables for the
financial topics. Fields that are absent, empty or still carry a placeholder
marker are left out entirely.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional

from ..domain.topics import EXTRACTION_ERROR, NOT_AVAILABLE, Column, FieldSpec, TopicSpec


_PLACEHOLDERS = {NOT_AVAILABLE.lower(), EXTRACTION_ERROR.lower(), "n/a", "none", "null", "undefined"}


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        stripped = value.strip()
        return not stripped or stripped.lower() in _PLACEHOLDERS
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def to_number(value: Any) -> Optional[float]:
    """Best-effort numeric reading of ``1200``, ``"1,200"`` or ``"$1.2k"``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return None
    raw = value.strip().replace(",", "").replace("$", "").replace(" ", "")
    multiplier = 1.0
    if raw[-1:].lower() in ("k", "m"):
        multiplier = 1_000.0 if raw[-1].lower() == "k" else 1_000_000.0
        raw = raw[:-1]
    try:
        return float(raw) * multiplier
    except ValueError:
        return None


def format_money(value: Any) -> str:
    number = to_number(value)
    if number is None:
        return str(value)
    if number == int(number):
        return f"${int(number):,}"
    return f"${number:,.2f}"


def format_percent(value: Any) -> str:
    if is_blank(value):
        return "N/A"
    number = to_number(str(value).rstrip("%")) if isinstance(value, str) else to_number(value)
    if number is None:
        return str(value)
    return f"{number:g}%"


def _cell(column: Column, value: Any) -> str:
    if column.kind == "percent":
        return format_percent(value)
    if is_blank(value):
        return ""
    if column.kind == "money":
        return format_money(value)
    return str(value).replace("|", "/").replace("\n", " ")


def _describe_item(item: Any) -> str:
    if isinstance(item, dict):
        parts = [str(v) for v in item.values() if not is_blank(v)]
        if not parts:
            return ""
        head, *rest = parts
        return f"**{head}**" + (f": {'; '.join(rest)}" if rest else "")
    return str(item).strip()


def render_list(items: Iterable[Any]) -> List[str]:
    lines = []
    for item in items:
        text = _describe_item(item)
        if text:
            lines.append(f"- {text}")
    return lines


def render_table(spec: FieldSpec, rows: Iterable[Any]) -> List[str]:
    rows = [r for r in rows if isinstance(r, dict)]
    if not rows:
        return []
    lines = [
        "| " + " | ".join(c.label for c in spec.columns) + " |",
        "| " + " | ".join("-" * max(3, len(c.label)) for c in spec.columns) + " |",
    ]
    for row in rows:
        lines.append("| " + " | ".join(_cell(c, row.get(c.name)) for c in spec.columns) + " |")
    if spec.total_of:
        amounts = [to_number(row.get(spec.total_of)) for row in rows]
        total = sum(a for a in amounts if a is not None)
        lines.append("")
        lines.append(f"**{spec.total_label or 'Total'}:** {format_money(total)}")
    return lines


def render_field(spec: FieldSpec, value: Any) -> List[str]:
    if is_blank(value):
        return []
    if spec.kind == "table":
        body = render_table(spec, value if isinstance(value, list) else [])
    elif spec.kind == "list":
        body = render_list(value if isinstance(value, list) else [value])
    elif spec.kind == "money":
        body = [format_money(value)]
    else:
        body = [str(value).strip()]
    if not body:
        return []
    return [f"### {spec.label}", *body, ""]


def humanize_key(key: str) -> str:
    """``targetMarket`` -> ``Target Market``."""
    words = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", key or "")
    words = re.sub(r"[-_]+", " ", words).strip()
    return words[:1].upper() + words[1:]


def render_topic(topic: TopicSpec, data: Optional[Dict[str, Any]]) -> str:
    data = data or {}
    lines = [f"## {topic.title}", ""]
    if topic.sectioned:
        for key, value in data.items():
            if is_blank(value):
                continue
            lines.extend([f"### {humanize_key(key)}", str(value).strip(), ""])
    else:
        for spec in topic.fields:
            lines.extend(render_field(spec, data.get(spec.name)))
    if len(lines) == 2:
        return ""
    return "\n".join(lines).rstrip() + "\n"
