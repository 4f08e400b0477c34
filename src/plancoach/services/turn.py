"""One conversational turn against a topic thread.

Idle -> AwaitingPriorRun -> MessageSent -> RunRunning -> RunTerminal -> Done.
The orchestrator owns no topic knowledge beyond the instructions it is handed;
``build_instructions`` derives those from a ``TopicSpec``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..domain.errors import AssistantNotConfigured, NoAssistantResponse
from ..domain.topics import TopicSpec, section_title
from ..security.rate_limit import RequestSpacer
from .assistant_gateway import AssistantGateway, ThreadMessage
from .run_poller import RunPoller
from .sanitize import sanitize_reply


LOG = logging.getLogger("plancoach.assistant")

CONTEXT_EXCERPT_CHARS = 200

_NO_JSON_RULES = (
    "Respond in plain conversational prose. Never include JSON, code blocks or "
    "structured data formats in your reply; structured data is captured separately."
)

_HELP_RULES = (
    "The user has asked for help. Explain what this part of the plan should cover, "
    "why it matters, and give two or three concrete examples tailored to their business. "
    "Finish with one simple question that helps them get started."
)


def build_instructions(
    topic: TopicSpec,
    *,
    is_help: bool = False,
    section_id: Optional[str] = None,
    context: Optional[Iterable[tuple]] = None,
) -> str:
    """Compose run instructions for a topic turn.

    ``context`` yields ``(title, text)`` pairs from related topics; only the first
    ``CONTEXT_EXCERPT_CHARS`` characters of each are quoted.
    """
    subject = topic.focus
    if topic.sectioned and section_id:
        subject = f"the '{section_title(section_id)}' section of {topic.label}"
    parts = [
        f"You are a business planning expert helping the user write the {topic.title} "
        f"part of their business plan. Focus on {subject}.",
        "Ask one focused question at a time, build on what the user has already told you, "
        "and keep advice specific and practical for their type of business.",
        _NO_JSON_RULES,
    ]
    excerpts = []
    for title, text in context or ():
        if text:
            excerpts.append(f"- {title}: {str(text)[:CONTEXT_EXCERPT_CHARS]}")
    if excerpts:
        parts.append("What the user has already written elsewhere in the plan:\n" + "\n".join(excerpts))
    if is_help:
        parts.append(_HELP_RULES)
    return "\n\n".join(parts)


def latest_assistant_message(gateway: AssistantGateway, thread_id: str, run_id: Optional[str] = None) -> ThreadMessage:
    """Most recent assistant message on the thread.

    Only the newest assistant message counts: when it has no text block, or it
    was written by a run other than ``run_id``, the run produced no reply.
    """
    for msg in gateway.list_messages(thread_id, order="desc"):
        if msg.role != "assistant":
            continue
        if run_id and msg.run_id and msg.run_id != run_id:
            raise NoAssistantResponse(f"Run {run_id} left no message on thread {thread_id}")
        if not msg.text:
            raise NoAssistantResponse(f"Latest assistant message on thread {thread_id} has no text")
        return msg
    raise NoAssistantResponse(f"No assistant message on thread {thread_id}")


@dataclass
class TurnResult:
    thread_id: str
    run_id: str
    reply: str
    raw_reply: str
    user_message_id: str = ""
    assistant_message_id: str = ""


class TurnOrchestrator:
    def __init__(self, gateway: AssistantGateway, poller: RunPoller, spacer: RequestSpacer) -> None:
        self._gateway = gateway
        self._poller = poller
        self._spacer = spacer

    def run_turn(
        self,
        thread_id: str,
        text: str,
        *,
        assistant_id: Optional[str],
        instructions: Optional[str] = None,
        purpose: str = "conversation",
        sanitize: bool = True,
    ) -> TurnResult:
        if not assistant_id:
            raise AssistantNotConfigured("No assistant id configured for this topic")
        self._poller.await_idle(thread_id)
        self._spacer.wait(assistant_id)
        user_message_id = self._gateway.append_message(thread_id, "user", text)
        run_id = self._gateway.start_run(thread_id, assistant_id, instructions)
        self._poller.wait(thread_id, run_id, purpose=purpose)
        message = latest_assistant_message(self._gateway, thread_id, run_id)
        raw = message.text or ""
        LOG.debug(
            "assistant_turn_completed",
            extra={"thread_id": thread_id, "run_id": run_id, "chars": len(raw)},
        )
        return TurnResult(
            thread_id=thread_id,
            run_id=run_id,
            reply=sanitize_reply(raw) if sanitize else raw,
            raw_reply=raw,
            user_message_id=user_message_id,
            assistant_message_id=message.id,
        )
