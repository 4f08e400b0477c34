from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, List, Optional, Tuple

from plancoach.domain.errors import AssistantNotConfigured
from plancoach.services.assistant_gateway import Run, ThreadMessage
from plancoach.services.extraction import EXTRACTION_INSTRUCTIONS


DEFAULT_REPLY = "Thanks, that gives me a clear picture of your business. What should we cover next?"


class FakeGateway:
    """In-process stand-in for the assistant service.

    Conversation runs answer from ``replies`` (then ``DEFAULT_REPLY``; a ``None``
    reply posts an assistant message without a text block). Runs started with
    the extraction instructions answer from ``extraction_replies`` (then
    ``extraction_default``). Each run walks through ``run_statuses``.
    Set ``raise_on`` to ``{"method_name": exc}`` to make a call fail.
    """

    def __init__(
        self,
        replies: Optional[List[Optional[str]]] = None,
        *,
        extraction_replies: Optional[List[str]] = None,
        extraction_default: str = "{}",
        run_statuses: Optional[List[str]] = None,
    ) -> None:
        self.replies: Deque[Optional[str]] = deque(replies or [])
        self.extraction_replies: Deque[str] = deque(extraction_replies or [])
        self.extraction_default = extraction_default
        self.run_statuses = list(run_statuses or ["completed"])
        self.threads: Dict[str, List[ThreadMessage]] = {}
        self.runs: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, tuple]] = []
        self.raise_on: Dict[str, Exception] = {}
        self.last_error: Optional[str] = None
        self._seq = 0

    configured = True

    def _next(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}_{self._seq}"

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        exc = self.raise_on.get(name)
        if exc is not None:
            raise exc

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    def extraction_runs(self) -> int:
        return sum(1 for run in self.runs.values() if run["instructions"] == EXTRACTION_INSTRUCTIONS)

    def create_thread(self) -> str:
        self._record("create_thread")
        thread_id = self._next("thread")
        self.threads[thread_id] = []
        return thread_id

    def append_message(self, thread_id: str, role: str, text: str) -> str:
        self._record("append_message", thread_id, role, text)
        message_id = self._next("msg")
        self.threads.setdefault(thread_id, []).append(
            ThreadMessage(id=message_id, role=role, text=text, created_at=self._seq)
        )
        return message_id

    def start_run(self, thread_id: str, assistant_id: str, instructions: Optional[str] = None) -> str:
        self._record("start_run", thread_id, assistant_id, instructions)
        if not assistant_id:
            raise AssistantNotConfigured("No assistant id configured")
        run_id = self._next("run")
        statuses = deque(self.run_statuses)
        self.runs[run_id] = {
            "thread_id": thread_id,
            "assistant_id": assistant_id,
            "instructions": instructions,
            "statuses": statuses,
        }
        if statuses[-1] == "completed":
            if instructions == EXTRACTION_INSTRUCTIONS:
                reply = self.extraction_replies.popleft() if self.extraction_replies else self.extraction_default
            else:
                reply = self.replies.popleft() if self.replies else DEFAULT_REPLY
            message_id = self._next("msg")
            self.threads[thread_id].append(
                ThreadMessage(id=message_id, role="assistant", text=reply, created_at=self._seq, run_id=run_id)
            )
        return run_id

    def get_run(self, thread_id: str, run_id: str) -> Run:
        self._record("get_run", thread_id, run_id)
        statuses = self.runs[run_id]["statuses"]
        status = statuses.popleft() if len(statuses) > 1 else statuses[0]
        return Run(id=run_id, status=status, last_error=self.last_error if status == "failed" else None)

    def list_runs(self, thread_id: str, limit: int = 20) -> List[Run]:
        self._record("list_runs", thread_id)
        return [
            Run(id=run_id, status=run["statuses"][0])
            for run_id, run in self.runs.items()
            if run["thread_id"] == thread_id
        ]

    def list_messages(self, thread_id: str, order: str = "desc", limit: int = 100) -> List[ThreadMessage]:
        self._record("list_messages", thread_id, order)
        messages = list(self.threads.get(thread_id, []))
        return list(reversed(messages)) if order == "desc" else messages

    def delete_message(self, thread_id: str, message_id: str) -> None:
        self._record("delete_message", thread_id, message_id)
        self.threads[thread_id] = [m for m in self.threads.get(thread_id, []) if m.id != message_id]


class ScriptedRuns:
    """Minimal gateway for poller tests: ``get_run`` walks a fixed status list."""

    def __init__(self, statuses: List[str], *, last_error: Optional[str] = None, listed: Optional[List[Run]] = None):
        self.statuses = deque(statuses)
        self.last_error = last_error
        self.listed = listed or []
        self.get_run_calls = 0

    def get_run(self, thread_id: str, run_id: str) -> Run:
        self.get_run_calls += 1
        status = self.statuses.popleft() if len(self.statuses) > 1 else self.statuses[0]
        return Run(id=run_id, status=status, last_error=self.last_error if status == "failed" else None)

    def list_runs(self, thread_id: str, limit: int = 20) -> List[Run]:
        return list(self.listed)
