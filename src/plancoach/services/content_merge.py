"""Thread references and topic data inside a plan's ``content`` document."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from ..domain.errors import NotFoundError
from ..domain.models import BusinessPlan
from ..domain.topics import TopicSpec
from ..infrastructure.plan_repository import PlanRepository, lookup
from .assistant_gateway import AssistantGateway


LOG = logging.getLogger("plancoach")

THREADS_KEY = "threads"


def thread_location(topic: TopicSpec, section_id: Optional[str] = None) -> Tuple[Tuple[str, ...], str]:
    """``(path, key)`` of a topic's thread id inside ``content``."""
    if topic.sectioned:
        return (THREADS_KEY,), topic.section_thread_key(section_id or "")
    return topic.topic_path, topic.thread_key


def stored_thread_id(plan: BusinessPlan, topic: TopicSpec, section_id: Optional[str] = None) -> Optional[str]:
    path, key = thread_location(topic, section_id)
    node = lookup(plan.content, path) or {}
    value = node.get(key)
    return value if isinstance(value, str) and value else None


def topic_node(plan: BusinessPlan, topic: TopicSpec) -> Dict[str, Any]:
    return lookup(plan.content, topic.topic_path) or {}


class ThreadStore:
    def __init__(self, repo: PlanRepository, gateway: AssistantGateway) -> None:
        self._repo = repo
        self._gateway = gateway

    def get_or_create_thread(self, plan_id: str, topic: TopicSpec, section_id: Optional[str] = None) -> str:
        """Reuse the stored thread for (plan, topic[, section]) or create one.

        The store is a set-if-absent, so when two requests race the first stored
        id wins and the loser's remote thread is simply abandoned.
        """
        plan = self._repo.get(plan_id)
        if plan is None:
            raise NotFoundError()
        existing = stored_thread_id(plan, topic, section_id)
        if existing:
            return existing
        created = self._gateway.create_thread()
        path, key = thread_location(topic, section_id)
        stored = self._repo.set_if_absent(plan_id, path, key, created)
        if stored is None:
            raise NotFoundError()
        if stored != created:
            LOG.info("thread_creation_lost_race", extra={"plan_id": plan_id, "topic": topic.slug})
        return stored


class ContentMerger:
    """Writes extracted data and its rendered text back into the plan.

    Each write is a shallow merge at one path, applied by the repository
    against the latest stored document, so sibling topics and unrelated keys
    are never dropped.
    """

    def __init__(self, repo: PlanRepository, render: Callable[[TopicSpec, Dict[str, Any]], str]) -> None:
        self._repo = repo
        self._render = render

    def merge_topic_data(self, plan_id: str, topic: TopicSpec, data: Dict[str, Any]) -> Tuple[Dict[str, Any], str]:
        """Merge ``data`` over the stored topic data; return ``(merged data, rendered text)``."""
        plan = self._repo.merge_content(plan_id, topic.topic_path + (topic.data_key,), data)
        if plan is None:
            raise NotFoundError()
        merged = dict(topic_node(plan, topic).get(topic.data_key) or {})
        text = self._render(topic, merged)
        if self._repo.merge_content(plan_id, topic.topic_path, {topic.text_key: text}) is None:
            raise NotFoundError()
        return merged, text

    def clean_sections(self, plan_id: str, topic: TopicSpec, cleaned: Dict[str, Any]) -> Optional[BusinessPlan]:
        """Replace a sectioned topic's data with a cleaned copy, keeping all other content."""
        plan = self._repo.merge_content(plan_id, topic.topic_path, {topic.data_key: cleaned})
        if plan is None:
            raise NotFoundError()
        return plan
