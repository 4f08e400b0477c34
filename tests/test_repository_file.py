import json

from plancoach.domain.models import BusinessPlanCreate
from plancoach.infrastructure.plan_repository import FilePlanRepository, InMemoryPlanRepository, get_repo, reset_repo


def test_file_repo_persistence_and_merge(tmp_path):
    pfile = tmp_path / "plans.json"
    repo = FilePlanRepository(file_path=str(pfile))

    assert repo.list() == []

    plan = repo.create(BusinessPlanCreate(title="Unit Test", user_id="u1"))
    assert plan.plan_id.endswith("-0001")

    repo.merge_content(plan.plan_id, ("operations", "kpiData"), {"benchmarks": "Top quartile"})
    stored = repo.set_if_absent(plan.plan_id, ("operations",), "kpisThreadId", "thread_1")
    assert stored == "thread_1"
    assert repo.set_if_absent(plan.plan_id, ("operations",), "kpisThreadId", "thread_2") == "thread_1"

    on_disk = json.loads(pfile.read_text(encoding="utf-8"))
    assert on_disk[plan.plan_id]["content"]["operations"]["kpisThreadId"] == "thread_1"

    # Reload into a fresh repo
    repo2 = FilePlanRepository(file_path=str(pfile))
    got = repo2.get(plan.plan_id)
    assert got is not None
    assert got.content["operations"] == {"kpiData": {"benchmarks": "Top quartile"}, "kpisThreadId": "thread_1"}

    # Counter continues from the stored ids
    assert repo2.create(BusinessPlanCreate()).plan_id.endswith("-0002")


def test_file_repo_starts_clean_on_corrupt_file(tmp_path):
    pfile = tmp_path / "plans.json"
    pfile.write_text("{not json", encoding="utf-8")
    repo = FilePlanRepository(file_path=str(pfile))
    assert repo.list() == []


def test_replace_content_and_missing_plans():
    repo = InMemoryPlanRepository()
    plan = repo.create(BusinessPlanCreate(title="X"))
    updated = repo.replace_content(plan.plan_id, {"vision": "## Vision"})
    assert updated.content == {"vision": "## Vision"}
    assert repo.replace_content("nope", {}) is None
    assert repo.merge_content("nope", (), {"a": 1}) is None
    assert repo.set_if_absent("nope", (), "k", "v") is None


def test_returned_plans_are_copies():
    repo = InMemoryPlanRepository()
    plan = repo.create(BusinessPlanCreate(title="X"))
    fetched = repo.get(plan.plan_id)
    fetched.content["coverPage"]["businessName"] = "changed"
    assert repo.get(plan.plan_id).content["coverPage"]["businessName"] == "X"


def test_merge_replaces_non_mapping_on_path():
    repo = InMemoryPlanRepository()
    plan = repo.create(BusinessPlanCreate(title="X"))
    repo.merge_content(plan.plan_id, (), {"operations": "legacy text"})
    repo.merge_content(plan.plan_id, ("operations",), {"kpis": "## KPIs"})
    assert repo.get(plan.plan_id).content["operations"] == {"kpis": "## KPIs"}


def test_get_repo_selects_file_impl(monkeypatch, tmp_path):
    monkeypatch.setenv("PLANCOACH_REPO_IMPL", "file")
    monkeypatch.setenv("PLANCOACH_PLANS_FILE", str(tmp_path / "p.json"))
    reset_repo()
    try:
        assert isinstance(get_repo(), FilePlanRepository)
        assert get_repo() is get_repo()
    finally:
        reset_repo()
