import pytest

from plancoach.observability.metrics import EXTRACTION_FALLBACKS, sanitize_path


@pytest.mark.parametrize(
    "path,expected",
    [
        ("", "/"),
        ("/health", "/health"),
        ("/api/business-plans/BP-2025-0001/operations/kpis", "/business-plans/{id}/operations/kpis"),
        ("/business-plans/BP-2025-0002?include_messages=true", "/business-plans/{id}"),
        ("/api/topics", "/topics"),
    ],
)
def test_sanitize_path(path, expected):
    assert sanitize_path(path) == expected


def test_extraction_fallbacks_are_counted(client, gateway, plan):
    counter = EXTRACTION_FALLBACKS.labels(topic="vision", reason="empty")
    before = counter._value.get()
    client.post(f"/business-plans/{plan.plan_id}/vision", json={"message": "We want to grow"})
    assert counter._value.get() == before + 1
