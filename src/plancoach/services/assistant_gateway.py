"""HTTP client for the remote assistant service (threads, messages, runs).

Speaks the OpenAI Assistants v2 REST surface directly over a pooled
``requests`` session. Every call is remote, billable and rate limited, so
callers get typed errors from ``plancoach.domain.errors`` instead of raw HTTP.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import Settings, get_settings
from ..domain.errors import (
    AssistantNotConfigured,
    GatewayError,
    RateLimited,
    ThreadBusy,
)


LOG = logging.getLogger("plancoach.assistant")

ACTIVE_RUN_STATUSES = frozenset({"queued", "in_progress", "cancelling", "requires_action"})
TERMINAL_RUN_STATUSES = frozenset({"completed", "failed", "cancelled", "expired", "incomplete"})


@dataclass
class Run:
    id: str
    status: str
    last_error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status not in ACTIVE_RUN_STATUSES


@dataclass
class ThreadMessage:
    id: str
    role: str
    text: Optional[str]
    created_at: int = 0
    run_id: Optional[str] = None


def _build_session() -> requests.Session:
    session = requests.Session()
    # POSTs are not retried: a replayed message or run would duplicate billable work.
    retry = Retry(
        total=2,
        backoff_factor=0.5,
        status_forcelist=(500, 502, 503, 504),
        allowed_methods=frozenset(["GET", "DELETE"]),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry, pool_connections=10, pool_maxsize=10)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def _retry_after(resp: requests.Response) -> Optional[int]:
    raw = resp.headers.get("Retry-After")
    if not raw:
        return None
    try:
        return max(1, int(float(raw)))
    except ValueError:
        return None


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "").strip()[:300]
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        return str(err.get("message") or "")
    return str(err or body)[:300]


def _to_run(data: Dict[str, Any]) -> Run:
    last_error = data.get("last_error")
    message = None
    if isinstance(last_error, dict):
        message = last_error.get("message") or last_error.get("code")
    elif last_error:
        message = str(last_error)
    return Run(id=str(data.get("id", "")), status=str(data.get("status", "")), last_error=message)


def _to_message(data: Dict[str, Any]) -> ThreadMessage:
    text: Optional[str] = None
    for block in data.get("content") or []:
        if isinstance(block, dict) and block.get("type") == "text":
            value = (block.get("text") or {}).get("value")
            if isinstance(value, str):
                text = value
                break
    return ThreadMessage(
        id=str(data.get("id", "")),
        role=str(data.get("role", "")),
        text=text,
        created_at=int(data.get("created_at") or 0),
        run_id=data.get("run_id") or None,
    )


class AssistantGateway:
    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None) -> None:
        self._settings = settings or get_settings()
        self.base_url = self._settings.base_url.rstrip("/")
        self._timeout = (self._settings.connect_timeout, self._settings.read_timeout)
        self._session = session or _build_session()

    @property
    def configured(self) -> bool:
        return bool(self._settings.api_key)

    def create_thread(self) -> str:
        data = self._request("POST", "/threads", json={})
        LOG.debug("assistant_thread_created", extra={"thread_id": data.get("id")})
        return str(data["id"])

    def append_message(self, thread_id: str, role: str, text: str) -> str:
        data = self._request("POST", f"/threads/{thread_id}/messages", json={"role": role, "content": text})
        return str(data.get("id", ""))

    def start_run(self, thread_id: str, assistant_id: str, instructions: Optional[str] = None) -> str:
        if not assistant_id:
            raise AssistantNotConfigured("No assistant id configured")
        payload: Dict[str, Any] = {"assistant_id": assistant_id}
        if instructions:
            payload["instructions"] = instructions
        data = self._request("POST", f"/threads/{thread_id}/runs", json=payload)
        LOG.debug("assistant_run_started", extra={"thread_id": thread_id, "run_id": data.get("id")})
        return str(data["id"])

    def get_run(self, thread_id: str, run_id: str) -> Run:
        return _to_run(self._request("GET", f"/threads/{thread_id}/runs/{run_id}"))

    def list_runs(self, thread_id: str, limit: int = 20) -> List[Run]:
        data = self._request("GET", f"/threads/{thread_id}/runs", params={"limit": limit})
        return [_to_run(item) for item in data.get("data") or []]

    def list_messages(self, thread_id: str, order: str = "desc", limit: int = 100) -> List[ThreadMessage]:
        data = self._request("GET", f"/threads/{thread_id}/messages", params={"order": order, "limit": limit})
        return [_to_message(item) for item in data.get("data") or []]

    def delete_message(self, thread_id: str, message_id: str) -> None:
        self._request("DELETE", f"/threads/{thread_id}/messages/{message_id}")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.api_key}",
            "Content-Type": "application/json",
            "OpenAI-Beta": "assistants=v2",
        }

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        if not self.configured:
            raise AssistantNotConfigured("OPENAI_API_KEY is not set")
        url = f"{self.base_url}{path}"
        try:
            resp = self._session.request(method, url, headers=self._headers(), timeout=self._timeout, **kwargs)
        except requests.exceptions.RequestException as exc:
            LOG.warning("assistant_request_failed", extra={"method": method, "path": path, "err": str(exc)})
            raise GatewayError(f"Assistant service request failed: {exc}") from exc

        if resp.status_code == 429:
            raise RateLimited(_error_message(resp) or "Upstream rate limit", retry_after=_retry_after(resp))
        if resp.status_code >= 400:
            message = _error_message(resp)
            LOG.warning(
                "assistant_request_rejected",
                extra={"method": method, "path": path, "status": resp.status_code, "err": message},
            )
            if resp.status_code == 400 and "active" in message.lower() and "run" in message.lower():
                raise ThreadBusy(message, upstream_status=400)
            raise GatewayError(message or f"Assistant service returned {resp.status_code}", upstream_status=resp.status_code)
        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as exc:
            raise GatewayError("Assistant service returned a non-JSON body") from exc
        return data if isinstance(data, dict) else {"data": data}


_gateway: Optional[AssistantGateway] = None


def get_gateway() -> AssistantGateway:
    global _gateway
    if _gateway is None:
        _gateway = AssistantGateway()
    return _gateway
