"""In-memory rate limiting primitives.

``rate_limit_action`` is a fixed-window limiter for inbound requests.
``RequestSpacer`` enforces a minimum gap between outbound calls to the
assistant service, keyed by assistant id.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Callable, Dict, Optional, Tuple


@dataclass
class _RateLimitEntry:
    count: int
    window_end: datetime


_LIMIT_STORE: Dict[Tuple[str, str], _RateLimitEntry] = {}


class RateLimitExceeded(Exception):
    def __init__(self, retry_after_seconds: int) -> None:
        super().__init__("Rate limit exceeded")
        self.retry_after_seconds = retry_after_seconds


def rate_limit_action(
    key: str,
    identifier: str,
    *,
    limit_env: str,
    window_env: str,
    default_limit: int,
    default_window_seconds: int,
) -> None:
    """Track a rate-limited action.

    Raises:
        RateLimitExceeded if the action should be blocked. retry_after_seconds
        indicates when the caller may retry.
    """

    if _rate_limiting_disabled():
        return

    limit = _env_int(limit_env, default_limit)
    window_seconds = _env_int(window_env, default_window_seconds)

    now = datetime.now(timezone.utc)
    store_key = (key, identifier)
    entry = _LIMIT_STORE.get(store_key)

    if entry and entry.window_end > now:
        if entry.count >= limit:
            retry_after = int((entry.window_end - now).total_seconds())
            raise RateLimitExceeded(max(retry_after, 1))
        entry.count += 1
        _LIMIT_STORE[store_key] = entry
        return

    window_end = now + timedelta(seconds=window_seconds)
    _LIMIT_STORE[store_key] = _RateLimitEntry(count=1, window_end=window_end)


def _env_int(name: str, default: int) -> int:
    if not name:
        return default
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
        return value if value > 0 else default
    except ValueError:
        return default


def _rate_limiting_disabled() -> bool:
    flag = os.getenv("PLANCOACH_RATE_LIMIT_DISABLED")
    if flag and flag.lower() in {"1", "true", "yes", "on"}:
        return True
    if os.getenv("PYTEST_CURRENT_TEST"):
        return True
    return False


def reset_rate_limits() -> None:
    """Clear in-memory counters (useful for tests)."""

    _LIMIT_STORE.clear()


class RequestSpacer:
    """Minimum spacing between outbound calls, per key.

    Process-local: each instance of the service spaces its own calls.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval = max(0.0, float(min_interval))
        self._clock = clock
        self._sleep = sleep
        self._last: Dict[str, float] = {}
        self._lock = Lock()

    def wait(self, key: Optional[str] = None) -> float:
        """Block until a call for ``key`` may go out; returns the seconds waited."""
        slot = key or "default"
        with self._lock:
            now = self._clock()
            last = self._last.get(slot)
            delay = 0.0
            if last is not None:
                delay = max(0.0, self.min_interval - (now - last))
            # Reserve the slot before sleeping so concurrent callers queue behind it.
            self._last[slot] = now + delay
        if delay > 0:
            self._sleep(delay)
        return delay

    def reset(self) -> None:
        with self._lock:
            self._last.clear()
