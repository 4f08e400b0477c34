"""Topic conversations over a business plan.

``TopicConversationService`` is what the routers call. For a POST it:

1. normalises the body (message, message list or direct field update);
2. acquires the topic thread (one per plan and topic, or per section);
3. drives a turn and sanitises the reply;
4. unless the user only asked for help, extracts structured data and merges it
   into ``content`` together with its rendered markdown.

Run failures during the turn become a curated reply; extraction failures become
the topic's default object, which is returned but never stored.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from ..config import Settings, get_settings
from ..domain.errors import AssistantNotConfigured, GatewayError, NoAssistantResponse, NotFoundError, RunFailed
from ..domain.models import BusinessPlan
from ..domain.topics import INVALID_SECTION_KEYS, TopicSpec, get_topic, section_key
from ..infrastructure.plan_repository import PlanRepository, get_repo
from ..security.rate_limit import RequestSpacer
from .assistant_gateway import AssistantGateway, get_gateway
from .content_merge import ContentMerger, ThreadStore, stored_thread_id, topic_node
from .extraction import ExtractionPass
from .normalizer import NormalizedTurn, normalize_request
from .render import humanize_key, render_topic
from .run_poller import RunPoller
from .turn import TurnOrchestrator, build_instructions


LOG = logging.getLogger("plancoach")


def _section_subject(section_id: str) -> str:
    """``target-market`` or ``targetMarket`` -> ``target market``."""
    return humanize_key(section_key(section_id)).lower()


def fallback_reply(topic: TopicSpec, *, is_help: bool, section_id: Optional[str] = None) -> str:
    subject = _section_subject(section_id) if topic.sectioned and section_id else topic.label
    if is_help:
        return (
            f"I'd be happy to help you with your {subject}. Could you tell me which part you'd like "
            "help with? For example, I can explain what to include or share examples from similar businesses."
        )
    return (
        f"Thank you for sharing that information about your {subject}. I wasn't able to respond just now; "
        "please send your next message in a moment and we'll pick up where we left off."
    )


def saved_reply(topic: TopicSpec, section_id: Optional[str] = None) -> str:
    subject = _section_subject(section_id) if section_id else topic.label
    return (
        f"I've saved your {subject} information. You can continue providing details "
        "or ask me any questions about this section."
    )


def clean_section_data(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if str(k).strip().lower() not in INVALID_SECTION_KEYS}


class TopicConversationService:
    def __init__(
        self,
        repo: PlanRepository,
        gateway: AssistantGateway,
        settings: Optional[Settings] = None,
        *,
        spacer: Optional[RequestSpacer] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or get_settings()
        self.repo = repo
        self.gateway = gateway
        self.poller = RunPoller(
            gateway,
            interval=self.settings.poll_interval,
            max_attempts=self.settings.poll_max_attempts,
            deadline=self.settings.poll_deadline,
            sleep=sleep,
            clock=clock,
        )
        self.spacer = spacer or RequestSpacer(self.settings.min_request_interval, clock=clock, sleep=sleep)
        self.turns = TurnOrchestrator(gateway, self.poller, self.spacer)
        self.extraction = ExtractionPass(gateway, self.poller, self.spacer)
        self.threads = ThreadStore(repo, gateway)
        self.merger = ContentMerger(repo, render_topic)

    def load_plan(self, plan_id: str) -> BusinessPlan:
        plan = self.repo.get(plan_id)
        if plan is None:
            raise NotFoundError()
        return plan

    # ---- reads ----

    def get_topic_state(
        self,
        plan_id: str,
        topic: TopicSpec,
        *,
        include_messages: bool = False,
        section_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        plan = self.load_plan(plan_id)
        node = topic_node(plan, topic)
        data = node.get(topic.data_key)
        data = dict(data) if isinstance(data, dict) else {}
        if topic.sectioned:
            cleaned = clean_section_data(data)
            if cleaned != data:
                LOG.info("invalid_section_keys_removed", extra={"plan_id": plan_id, "topic": topic.slug})
                self.merger.clean_sections(plan_id, topic, cleaned)
                data = cleaned
        thread_id = stored_thread_id(plan, topic, section_id) if (section_id or not topic.sectioned) else None
        out: Dict[str, Any] = {
            topic.data_key: data,
            topic.text_key: node.get(topic.text_key) or "",
            "threadId": thread_id,
        }
        if include_messages:
            out["messages"] = self.transcript(thread_id) if thread_id else []
        return out

    def transcript(self, thread_id: str) -> List[Dict[str, str]]:
        try:
            self.poller.await_idle(thread_id)
            messages = self.gateway.list_messages(thread_id, order="asc")
        except GatewayError as exc:
            LOG.warning("transcript_unavailable", extra={"thread_id": thread_id, "err": str(exc)})
            return []
        return [{"role": m.role, "content": m.text} for m in messages if m.text]

    # ---- writes ----

    def handle_turn(self, plan_id: str, topic: TopicSpec, body: Any) -> Dict[str, Any]:
        turn = normalize_request(topic, body)
        plan = self.load_plan(plan_id)
        if turn.is_direct_update:
            return self._apply_direct_update(plan_id, topic, turn)

        reply, fallback, thread_id = self._converse(plan, topic, turn)

        node = topic_node(self.load_plan(plan_id), topic)
        data = dict(node.get(topic.data_key) or {})
        text = node.get(topic.text_key) or ""
        extraction_fallback = False
        if thread_id and not fallback and (not turn.is_help_request or turn.finalizing):
            result = self.extraction.extract(
                topic,
                thread_id=thread_id,
                assistant_id=self.settings.extraction_assistant_for(topic),
                strategy=self.settings.strategy_for(topic),
                section_id=turn.section_id,
            )
            if result.fallback:
                extraction_fallback = True
                data = {**result.data, **data}
            else:
                data, text = self.merger.merge_topic_data(plan_id, topic, result.data)

        return self._response(topic, turn, reply, data, text, fallback=fallback, extraction_fallback=extraction_fallback)

    def _converse(self, plan: BusinessPlan, topic: TopicSpec, turn: NormalizedTurn):
        """Run the conversational turn; returns ``(reply, used_fallback, thread_id)``."""
        thread_id: Optional[str] = None
        try:
            thread_id = self.threads.get_or_create_thread(plan.plan_id, topic, turn.section_id)
            instructions = build_instructions(
                topic,
                is_help=turn.is_help_request,
                section_id=turn.section_id,
                context=self._context(plan, topic),
            )
            result = self.turns.run_turn(
                thread_id,
                turn.message_text or "",
                assistant_id=self.settings.assistant_for(topic),
                instructions=instructions,
            )
            return result.reply, False, thread_id
        except (AssistantNotConfigured, RunFailed, NoAssistantResponse) as exc:
            LOG.warning(
                "turn_fallback",
                extra={"plan_id": plan.plan_id, "topic": topic.slug, "reason": type(exc).__name__, "err": str(exc)},
            )
            return fallback_reply(topic, is_help=turn.is_help_request, section_id=turn.section_id), True, thread_id

    def _context(self, plan: BusinessPlan, topic: TopicSpec):
        for slug in topic.context_topics:
            other = get_topic(slug)
            if other is None:
                continue
            text = topic_node(plan, other).get(other.text_key)
            if isinstance(text, str) and text.strip():
                yield other.title, text.strip()

    def _apply_direct_update(self, plan_id: str, topic: TopicSpec, turn: NormalizedTurn) -> Dict[str, Any]:
        data, text = self.merger.merge_topic_data(plan_id, topic, turn.direct_updates)
        section_id = turn.section_id
        if topic.sectioned and not section_id and len(turn.direct_updates) == 1:
            section_id = next(iter(turn.direct_updates))
        reply = saved_reply(topic, section_id)
        return self._response(topic, turn, reply, data, text, section_id=section_id)

    def _response(
        self,
        topic: TopicSpec,
        turn: NormalizedTurn,
        reply: str,
        data: Dict[str, Any],
        text: str,
        *,
        fallback: bool = False,
        extraction_fallback: bool = False,
        section_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "message": {"role": "assistant", "content": reply},
            topic.data_key: data,
            topic.text_key: text,
            "isHelpRequest": turn.is_help_request,
            "fallback": fallback,
            "extractionFallback": extraction_fallback,
        }
        section_id = section_id or turn.section_id
        if topic.sectioned and section_id:
            out["sectionId"] = section_id
            out[section_id] = {"content": data.get(section_key(section_id), "")}
        return out


_service: Optional[TopicConversationService] = None


def get_conversation_service() -> TopicConversationService:
    global _service
    if _service is None:
        _service = TopicConversationService(get_repo(), get_gateway())
    return _service


def reset_conversation_service() -> None:
    global _service
    _service = None
