"""Runtime settings read from the environment.

Env vars:
- OPENAI_API_KEY, OPENAI_BASE_URL
- OPENAI_ASSISTANT_ID (default conversational assistant)
- OPENAI_BUSINESS_PLAN_ASSISTANT_ID (extraction runs)
- OPENAI_<TOPIC>_ASSISTANT_ID (per-topic override, see domain.topics)
- PLANCOACH_POLL_INTERVAL_MS, PLANCOACH_POLL_MAX_ATTEMPTS, PLANCOACH_POLL_DEADLINE_S
- PLANCOACH_MIN_REQUEST_INTERVAL_MS
- PLANCOACH_EXTRACTION_STRATEGY (side_thread | same_thread)
- PLANCOACH_HTTP_CONNECT_TIMEOUT, PLANCOACH_HTTP_READ_TIMEOUT
- PLANCOACH_ENV (development exposes error details)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .domain.topics import TopicSpec


DEFAULT_BASE_URL = "https://api.openai.com/v1"
EXTRACTION_STRATEGIES = ("side_thread", "same_thread")


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value >= 0 else default


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
        return value if value > 0 else default
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    default_assistant_id: Optional[str] = None
    extraction_assistant_id: Optional[str] = None
    poll_interval: float = 1.0
    poll_max_attempts: int = 120
    poll_deadline: float = 120.0
    min_request_interval: float = 0.5
    extraction_strategy: str = "side_thread"
    connect_timeout: float = 5.0
    read_timeout: float = 60.0
    environment: str = "production"
    env: Optional[Mapping[str, str]] = None

    @staticmethod
    def from_env(env: Optional[Mapping[str, str]] = None) -> "Settings":
        source = dict(os.environ if env is None else env)
        strategy = (source.get("PLANCOACH_EXTRACTION_STRATEGY") or "side_thread").strip().lower()
        if strategy not in EXTRACTION_STRATEGIES:
            strategy = "side_thread"
        return Settings(
            api_key=source.get("OPENAI_API_KEY") or None,
            base_url=(source.get("OPENAI_BASE_URL") or DEFAULT_BASE_URL).rstrip("/"),
            default_assistant_id=source.get("OPENAI_ASSISTANT_ID") or None,
            extraction_assistant_id=source.get("OPENAI_BUSINESS_PLAN_ASSISTANT_ID") or None,
            poll_interval=_env_float(source, "PLANCOACH_POLL_INTERVAL_MS", 1000.0) / 1000.0,
            poll_max_attempts=_env_int(source, "PLANCOACH_POLL_MAX_ATTEMPTS", 120),
            poll_deadline=_env_float(source, "PLANCOACH_POLL_DEADLINE_S", 120.0),
            min_request_interval=_env_float(source, "PLANCOACH_MIN_REQUEST_INTERVAL_MS", 500.0) / 1000.0,
            extraction_strategy=strategy,
            connect_timeout=_env_float(source, "PLANCOACH_HTTP_CONNECT_TIMEOUT", 5.0),
            read_timeout=_env_float(source, "PLANCOACH_HTTP_READ_TIMEOUT", 60.0),
            environment=(source.get("PLANCOACH_ENV") or "production").strip().lower(),
            env=source,
        )

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    def assistant_for(self, topic: TopicSpec) -> Optional[str]:
        env = self.env or {}
        return env.get(topic.assistant_env) or self.default_assistant_id

    def extraction_assistant_for(self, topic: TopicSpec) -> Optional[str]:
        return self.extraction_assistant_id or self.assistant_for(topic)

    def strategy_for(self, topic: TopicSpec) -> str:
        return topic.extraction_strategy or self.extraction_strategy


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
