from plancoach.config import Settings
from plancoach.domain.topics import get_topic


def test_defaults():
    s = Settings.from_env({})
    assert s.api_key is None
    assert s.base_url == "https://api.openai.com/v1"
    assert s.poll_interval == 1.0
    assert s.poll_max_attempts == 120
    assert s.min_request_interval == 0.5
    assert s.extraction_strategy == "side_thread"
    assert s.is_development is False


def test_millisecond_values_and_bad_input():
    s = Settings.from_env(
        {
            "PLANCOACH_POLL_INTERVAL_MS": "250",
            "PLANCOACH_MIN_REQUEST_INTERVAL_MS": "1000",
            "PLANCOACH_POLL_MAX_ATTEMPTS": "-3",
            "PLANCOACH_EXTRACTION_STRATEGY": "carrier-pigeon",
            "PLANCOACH_ENV": "Development",
        }
    )
    assert s.poll_interval == 0.25
    assert s.min_request_interval == 1.0
    assert s.poll_max_attempts == 120
    assert s.extraction_strategy == "side_thread"
    assert s.is_development is True


def test_assistant_resolution_order():
    kpis = get_topic("operations/kpis")
    vision = get_topic("vision")
    s = Settings.from_env(
        {
            "OPENAI_ASSISTANT_ID": "asst_default",
            "OPENAI_KPI_ASSISTANT_ID": "asst_kpi",
        }
    )
    assert s.assistant_for(kpis) == "asst_kpi"
    assert s.assistant_for(vision) == "asst_default"
    # No dedicated extraction assistant: reuse the topic's own
    assert s.extraction_assistant_for(kpis) == "asst_kpi"

    s2 = Settings.from_env({"OPENAI_ASSISTANT_ID": "a", "OPENAI_BUSINESS_PLAN_ASSISTANT_ID": "x"})
    assert s2.extraction_assistant_for(vision) == "x"


def test_strategy_from_env():
    s = Settings.from_env({"PLANCOACH_EXTRACTION_STRATEGY": "same_thread"})
    assert s.strategy_for(get_topic("markets")) == "same_thread"
