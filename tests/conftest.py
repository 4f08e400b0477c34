import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
for path in (ROOT, ROOT / "src"):
    path_str = str(path)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from plancoach.config import Settings  # noqa: E402
from plancoach.domain.models import BusinessPlanCreate  # noqa: E402
from plancoach.infrastructure.plan_repository import InMemoryPlanRepository  # noqa: E402
from plancoach.security.rate_limit import reset_rate_limits  # noqa: E402
from plancoach.services.conversation import TopicConversationService  # noqa: E402

from .utils import FakeGateway  # noqa: E402


TEST_ENV = {
    "OPENAI_API_KEY": "sk-test",
    "OPENAI_ASSISTANT_ID": "asst_chat",
    "OPENAI_BUSINESS_PLAN_ASSISTANT_ID": "asst_extract",
    "PLANCOACH_MIN_REQUEST_INTERVAL_MS": "0",
    "PLANCOACH_POLL_INTERVAL_MS": "0",
    "PLANCOACH_POLL_MAX_ATTEMPTS": "10",
}


@pytest.fixture(autouse=True)
def _clean_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def settings() -> Settings:
    return Settings.from_env(TEST_ENV)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def repo() -> InMemoryPlanRepository:
    return InMemoryPlanRepository()


@pytest.fixture
def plan(repo):
    return repo.create(BusinessPlanCreate(title="Crumb & Co", user_id="user-1"))


@pytest.fixture
def service(repo, gateway, settings) -> TopicConversationService:
    return TopicConversationService(repo, gateway, settings, sleep=lambda _s: None)


@pytest.fixture
def client(monkeypatch, repo, service):
    """TestClient wired to the in-memory repo and the fake gateway."""
    from fastapi.testclient import TestClient

    from plancoach.api.main import app
    from plancoach.infrastructure import plan_repository
    from plancoach.services import conversation

    monkeypatch.delenv("PLANCOACH_REPO_IMPL", raising=False)
    monkeypatch.delenv("DB_MODE", raising=False)
    monkeypatch.setattr(plan_repository, "_repo", repo)
    monkeypatch.setattr(conversation, "_service", service)
    return TestClient(app)
