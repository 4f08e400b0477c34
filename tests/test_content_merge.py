import json

import pytest

from plancoach.domain.errors import NotFoundError
from plancoach.domain.topics import get_topic
from plancoach.services.content_merge import ContentMerger, ThreadStore, thread_location
from plancoach.services.render import render_topic

from .utils import FakeGateway


def test_thread_reuse_is_idempotent(repo, plan):
    gateway = FakeGateway()
    store = ThreadStore(repo, gateway)
    topic = get_topic("operations/kpis")

    first = store.get_or_create_thread(plan.plan_id, topic)
    second = store.get_or_create_thread(plan.plan_id, topic)

    assert first == second
    assert gateway.count("create_thread") == 1
    assert repo.get(plan.plan_id).content["operations"]["kpisThreadId"] == first


def test_sections_get_their_own_threads(repo, plan):
    gateway = FakeGateway()
    store = ThreadStore(repo, gateway)
    topic = get_topic("business-description")

    a = store.get_or_create_thread(plan.plan_id, topic, "target-market")
    b = store.get_or_create_thread(plan.plan_id, topic, "business-model")

    assert a != b
    threads = repo.get(plan.plan_id).content["threads"]
    assert threads == {"businessDescription_target-market": a, "businessDescription_business-model": b}


def test_first_stored_thread_wins(repo, plan):
    topic = get_topic("vision")
    path, key = thread_location(topic)
    assert repo.set_if_absent(plan.plan_id, path, key, "thread_existing") == "thread_existing"
    assert repo.set_if_absent(plan.plan_id, path, key, "thread_late") == "thread_existing"


def test_thread_for_missing_plan(repo):
    with pytest.raises(NotFoundError):
        ThreadStore(repo, FakeGateway()).get_or_create_thread("BP-0000-0000", get_topic("vision"))


def test_merge_leaves_other_topics_untouched(repo, plan):
    merger = ContentMerger(repo, render_topic)
    other = {"visionData": {"longTermVision": "Regional leader"}, "vision": "## Vision", "visionThreadId": "t_9"}
    repo.merge_content(plan.plan_id, (), other)
    repo.merge_content(plan.plan_id, ("operations",), {"kpisThreadId": "t_1", "kpiData": {"benchmarks": "Top quartile"}})
    before = json.dumps(repo.get(plan.plan_id).content["visionData"], sort_keys=True)

    data, text = merger.merge_topic_data(plan.plan_id, get_topic("operations/kpis"), {"financialKPIs": ["Margin"]})

    content = repo.get(plan.plan_id).content
    assert json.dumps(content["visionData"], sort_keys=True) == before
    assert content["vision"] == "## Vision"
    assert content["coverPage"]["businessName"] == "Crumb & Co"
    assert content["operations"]["kpisThreadId"] == "t_1"
    assert data == {"benchmarks": "Top quartile", "financialKPIs": ["Margin"]}
    assert content["operations"]["kpiData"] == data
    assert content["operations"]["kpis"] == text
    assert "### Financial KPIs" in text and "### Industry Benchmarks" in text


def test_clean_sections_replaces_only_that_topic(repo, plan):
    topic = get_topic("business-description")
    repo.merge_content(plan.plan_id, (), {"businessDescriptionData": {"": "x", "targetMarket": "Bakeries"}})
    ContentMerger(repo, render_topic).clean_sections(plan.plan_id, topic, {"targetMarket": "Bakeries"})
    content = repo.get(plan.plan_id).content
    assert content["businessDescriptionData"] == {"targetMarket": "Bakeries"}
    assert "coverPage" in content
