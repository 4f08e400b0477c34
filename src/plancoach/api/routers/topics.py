"""Questionnaire endpoints, one GET/POST/PUT set per catalogue topic.

``/business-plans/{plan_id}/<slug>`` for every ``TopicSpec``; nested slugs
such as ``operations/kpis`` become nested paths.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Query

from ...domain.errors import RateLimited
from ...domain.models import TopicListing
from ...domain.topics import TopicSpec, all_topics
from ...security.rate_limit import RateLimitExceeded, rate_limit_action
from ...services.conversation import get_conversation_service


router = APIRouter(tags=["topics"])


@router.get("/topics", response_model=List[TopicListing])
def list_topics() -> List[TopicListing]:
    return [
        TopicListing(
            slug=t.slug,
            title=t.title,
            data_key=t.data_key,
            text_key=t.text_key,
            sectioned=t.sectioned,
            fields=t.field_names,
        )
        for t in all_topics()
    ]


def _limit_turns(plan_id: str, topic: TopicSpec) -> None:
    try:
        rate_limit_action(
            "topic_turn",
            f"{plan_id}:{topic.slug}",
            limit_env="PLANCOACH_TURN_LIMIT",
            window_env="PLANCOACH_TURN_WINDOW_S",
            default_limit=30,
            default_window_seconds=60,
        )
    except RateLimitExceeded as exc:
        raise RateLimited("Too many messages for this topic", retry_after=exc.retry_after_seconds) from exc


def _register(topic: TopicSpec) -> None:
    path = f"/business-plans/{{plan_id}}/{topic.slug}"
    name = topic.slug.replace("/", "_").replace("-", "_")

    def read_topic(
        plan_id: str,
        include_messages: bool = Query(default=False),
        section_id: Optional[str] = Query(default=None, alias="sectionId"),
    ) -> Dict[str, Any]:
        return get_conversation_service().get_topic_state(
            plan_id, topic, include_messages=include_messages, section_id=section_id
        )

    def post_turn(plan_id: str, body: Any = Body(default=None)) -> Dict[str, Any]:
        _limit_turns(plan_id, topic)
        return get_conversation_service().handle_turn(plan_id, topic, body)

    router.add_api_route(path, read_topic, methods=["GET"], name=f"get_{name}", summary=f"Read {topic.title}")
    router.add_api_route(
        path, post_turn, methods=["POST", "PUT"], name=f"turn_{name}", summary=f"Chat about {topic.title}"
    )


for _topic in all_topics():
    _register(_topic)
