from __future__ import annotations

import copy
import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Optional, Protocol, Sequence

from ..domain.models import BusinessPlan, BusinessPlanCreate


LOG = logging.getLogger("plancoach.repository")

DEFAULT_TITLE = "New Business Plan"


class PlanRepository(Protocol):
    def list(self, user_id: Optional[str] = None) -> List[BusinessPlan]: ...
    def get(self, plan_id: str) -> Optional[BusinessPlan]: ...
    def create(self, payload: BusinessPlanCreate) -> BusinessPlan: ...
    def merge_content(self, plan_id: str, path: Sequence[str], fields: Dict[str, Any]) -> Optional[BusinessPlan]: ...
    def set_if_absent(self, plan_id: str, path: Sequence[str], key: str, value: Any) -> Any: ...
    def replace_content(self, plan_id: str, content: Dict[str, Any]) -> Optional[BusinessPlan]: ...


def initial_content(title: str, now: datetime) -> Dict[str, Any]:
    return {"coverPage": {"businessName": title, "date": now.strftime("%Y-%m-%d")}}


def build_plan(plan_id: str, payload: BusinessPlanCreate, now: datetime) -> BusinessPlan:
    title = (payload.title or "").strip() or DEFAULT_TITLE
    return BusinessPlan(
        plan_id=plan_id,
        title=title,
        description=payload.description,
        user_id=payload.user_id,
        status="draft",
        created_at=now,
        updated_at=now,
        content=initial_content(title, now),
    )


def plan_sequence(plan_id: str) -> int:
    """Numeric suffix of ``BP-YYYY-####``; 0 when the id has another shape."""
    parts = str(plan_id).split("-")
    if len(parts) == 3 and parts[2].isdigit():
        return int(parts[2])
    return 0


def walk(content: Dict[str, Any], path: Sequence[str]) -> Dict[str, Any]:
    """Return the mapping at ``path``, creating empty mappings on the way.

    A non-mapping value sitting on the path is replaced by an empty mapping.
    """
    node = content
    for key in path:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    return node


def lookup(content: Dict[str, Any], path: Sequence[str]) -> Optional[Dict[str, Any]]:
    node: Any = content
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node if isinstance(node, dict) else None


class InMemoryPlanRepository:
    """Plans kept in a dict; every content write happens under one re-entrant lock.

    Merges re-read the stored document inside the lock, so two topics written
    concurrently on the same plan both survive.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._plans: Dict[str, BusinessPlan] = {}
        self._counter: int = 0

    def _generate_plan_id(self) -> str:
        self._counter += 1
        year = datetime.now(UTC).year
        return f"BP-{year}-{self._counter:04d}"

    def _commit(self) -> None:
        """Hook for subclasses that persist the dict somewhere."""

    def list(self, user_id: Optional[str] = None) -> List[BusinessPlan]:
        with self._lock:
            plans = [p for p in self._plans.values() if user_id is None or p.user_id == user_id]
            plans.sort(key=lambda p: p.created_at, reverse=True)
            return [p.model_copy(deep=True) for p in plans]

    def get(self, plan_id: str) -> Optional[BusinessPlan]:
        with self._lock:
            plan = self._plans.get(plan_id)
            return plan.model_copy(deep=True) if plan else None

    def create(self, payload: BusinessPlanCreate) -> BusinessPlan:
        with self._lock:
            plan = build_plan(self._generate_plan_id(), payload, datetime.now(UTC))
            self._plans[plan.plan_id] = plan
            self._commit()
            return plan.model_copy(deep=True)

    def merge_content(self, plan_id: str, path: Sequence[str], fields: Dict[str, Any]) -> Optional[BusinessPlan]:
        with self._lock:
            plan = self._plans.get(plan_id)
            if not plan:
                return None
            target = walk(plan.content, path)
            target.update(copy.deepcopy(fields))
            plan.updated_at = datetime.now(UTC)
            self._commit()
            return plan.model_copy(deep=True)

    def set_if_absent(self, plan_id: str, path: Sequence[str], key: str, value: Any) -> Any:
        with self._lock:
            plan = self._plans.get(plan_id)
            if not plan:
                return None
            target = walk(plan.content, path)
            existing = target.get(key)
            if existing:
                return existing
            target[key] = value
            plan.updated_at = datetime.now(UTC)
            self._commit()
            return value

    def replace_content(self, plan_id: str, content: Dict[str, Any]) -> Optional[BusinessPlan]:
        with self._lock:
            plan = self._plans.get(plan_id)
            if not plan:
                return None
            plan.content = copy.deepcopy(content)
            plan.updated_at = datetime.now(UTC)
            self._commit()
            return plan.model_copy(deep=True)


class FilePlanRepository(InMemoryPlanRepository):
    """JSON file-backed repository for development persistence.

    Structure: a single JSON object mapping plan_id -> plan dict.
    """

    def __init__(self, file_path: Optional[str] = None) -> None:
        super().__init__()
        root = Path(__file__).resolve().parents[3]
        default_path = root / "run" / "business_plans.json"
        self._path = Path(file_path or os.getenv("PLANCOACH_PLANS_FILE", str(default_path)))
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            # Unreadable file: start clean rather than refuse to boot in dev.
            LOG.warning("plans_file_unreadable", extra={"path": str(self._path), "err": str(exc)})
            return
        max_seq = 0
        for pid, raw in (data or {}).items():
            try:
                plan = BusinessPlan(**raw)
            except (TypeError, ValueError):
                LOG.warning("plans_file_bad_record", extra={"plan_id": pid})
                continue
            self._plans[pid] = plan
            max_seq = max(max_seq, plan_sequence(pid))
        self._counter = max_seq

    def _commit(self) -> None:
        obj = {pid: plan.model_dump(mode="json") for pid, plan in self._plans.items()}
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(obj, indent=2), encoding="utf-8")
        tmp.replace(self._path)


_repo: PlanRepository = InMemoryPlanRepository()
_mongo_repo: PlanRepository | None = None
_file_repo: PlanRepository | None = None


def repo_impl() -> str:
    """``PLANCOACH_REPO_IMPL`` wins; ``DB_MODE=mongo`` selects Mongo otherwise."""
    impl = os.getenv("PLANCOACH_REPO_IMPL", "").strip().lower()
    if impl:
        return impl
    return "mongo" if os.getenv("DB_MODE", "").strip().lower() == "mongo" else "memory"


def get_repo() -> PlanRepository:
    global _mongo_repo
    global _file_repo
    impl = repo_impl()
    if impl == "mongo":
        if _mongo_repo is None:
            from .plan_repository_mongo import MongoPlanRepository

            _mongo_repo = MongoPlanRepository()
        return _mongo_repo
    if impl == "file":
        if _file_repo is None:
            _file_repo = FilePlanRepository()
        return _file_repo
    return _repo


def reset_repo() -> None:
    """Fresh in-memory store and dropped singletons (useful for tests)."""
    global _repo, _mongo_repo, _file_repo
    _repo = InMemoryPlanRepository()
    _mongo_repo = None
    _file_repo = None
