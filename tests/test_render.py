from plancoach.domain.topics import NOT_AVAILABLE, get_topic
from plancoach.services.render import format_money, humanize_key, render_topic


def test_revenue_projection_table_with_total():
    topic = get_topic("financial-plan/revenue-projections")
    text = render_topic(
        topic,
        {
            "revenueStreams": [
                {"name": "Bread", "description": "Daily loaves", "projectedAmount": 12000, "timeframe": "Year 1"},
                {"name": "Cakes", "description": "Custom orders", "projectedAmount": "3,500", "timeframe": "Year 1"},
            ],
            "pricingStrategy": "Premium artisan pricing",
            "salesForecast": [{"period": "Q1", "amount": 4000, "growthRate": 5}],
            "growthAssumptions": "",
        },
    )
    assert text.startswith("## Revenue Projections")
    assert "| Revenue Stream | Description | Projected Amount | Timeframe |" in text
    assert "| Bread | Daily loaves | $12,000 | Year 1 |" in text
    assert "| Cakes | Custom orders | $3,500 | Year 1 |" in text
    assert "**Total Projected Revenue:** $15,500" in text
    assert "### Pricing Strategy\nPremium artisan pricing" in text
    assert "| Q1 | $4,000 | 5% |" in text
    assert "Growth Assumptions" not in text


def test_empty_and_placeholder_fields_are_omitted():
    topic = get_topic("operations/kpis")
    text = render_topic(
        topic,
        {
            "financialKPIs": ["Gross margin above 60%"],
            "operationalKPIs": [],
            "measurementFrequency": NOT_AVAILABLE,
            "benchmarks": None,
        },
    )
    assert "### Financial KPIs\n- Gross margin above 60%" in text
    assert "Operational KPIs" not in text
    assert "Measurement Frequency" not in text
    assert "Industry Benchmarks" not in text


def test_nothing_to_render_gives_empty_text():
    topic = get_topic("vision")
    assert render_topic(topic, {}) == ""
    assert render_topic(topic, topic.default_data()) == ""


def test_non_numeric_money_is_shown_verbatim():
    assert format_money("about forty thousand") == "about forty thousand"
    assert format_money(1234.5) == "$1,234.50"
    assert format_money("$2k") == "$2,000"


def test_sectioned_topic_renders_one_heading_per_section():
    topic = get_topic("business-description")
    text = render_topic(topic, {"targetMarket": "Independent bakeries", "businessModel": "Subscription"})
    assert "### Target Market\nIndependent bakeries" in text
    assert "### Business Model\nSubscription" in text


def test_list_items_may_be_objects():
    topic = get_topic("marketing-plan/promotional")
    text = render_topic(topic, {"campaigns": [{"name": "Spring launch", "budget": "$500"}]})
    assert "- **Spring launch**: $500" in text


def test_humanize_key():
    assert humanize_key("targetMarket") == "Target Market"
    assert humanize_key("go-to-market") == "Go to market"
