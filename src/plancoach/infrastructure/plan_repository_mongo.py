from __future__ import annotations

import asyncio
import logging
import os
from datetime import UTC, datetime
from typing import Any, Dict, List, Optional, Sequence

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from ..domain.models import BusinessPlan, BusinessPlanCreate
from .plan_repository import InMemoryPlanRepository, build_plan, lookup, plan_sequence


LOG = logging.getLogger("plancoach.repository")

_SHARED_FALLBACK_REPO: InMemoryPlanRepository | None = None


def dotted(path: Sequence[str], *keys: str) -> str:
    return ".".join(["content", *path, *keys])


class MongoPlanRepository:
    """Plans stored one document each in the ``business_plans`` collection.

    Topic merges are ``$set`` updates on dotted field paths, so concurrent
    writers touching different topics of the same plan never overwrite each
    other. When MongoDB is unreachable at start-up the repository serves from a
    shared in-memory store instead.
    """

    def __init__(self) -> None:
        self._client: AsyncIOMotorClient | None = None
        self._collection: AsyncIOMotorCollection | None = None
        self._fallback: InMemoryPlanRepository | None = None
        self._connect()

    def list(self, user_id: Optional[str] = None) -> List[BusinessPlan]:
        if self._collection is None:
            return self._fallback_repo().list(user_id)
        query: Dict[str, Any] = {} if user_id is None else {"user_id": user_id}
        docs = self._run(self._collection.find(query).sort("created_at", DESCENDING).to_list(length=5000))
        return [self._to_plan(doc) for doc in docs]

    def get(self, plan_id: str) -> Optional[BusinessPlan]:
        if self._collection is None:
            return self._fallback_repo().get(plan_id)
        doc = self._run(self._collection.find_one({"plan_id": plan_id}))
        return self._to_plan(doc) if doc else None

    def create(self, payload: BusinessPlanCreate) -> BusinessPlan:
        if self._collection is None:
            return self._fallback_repo().create(payload)
        plan = build_plan(self._generate_plan_id(), payload, datetime.now(UTC))
        self._run(self._collection.insert_one(plan.model_dump()))
        return plan

    def merge_content(self, plan_id: str, path: Sequence[str], fields: Dict[str, Any]) -> Optional[BusinessPlan]:
        if self._collection is None:
            return self._fallback_repo().merge_content(plan_id, path, fields)
        update: Dict[str, Any] = {dotted(path, key): value for key, value in fields.items()}
        update["updated_at"] = datetime.now(UTC)
        doc = self._run(
            self._collection.find_one_and_update(
                {"plan_id": plan_id},
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )
        )
        return self._to_plan(doc) if doc else None

    def set_if_absent(self, plan_id: str, path: Sequence[str], key: str, value: Any) -> Any:
        if self._collection is None:
            return self._fallback_repo().set_if_absent(plan_id, path, key, value)
        field = dotted(path, key)
        # $in [None, ""] also matches a missing field.
        doc = self._run(
            self._collection.find_one_and_update(
                {"plan_id": plan_id, field: {"$in": [None, ""]}},
                {"$set": {field: value, "updated_at": datetime.now(UTC)}},
                return_document=ReturnDocument.AFTER,
            )
        )
        if doc:
            return value
        current = self._run(self._collection.find_one({"plan_id": plan_id}, {"content": 1}))
        if not current:
            return None
        node = lookup(current.get("content") or {}, path) or {}
        return node.get(key)

    def replace_content(self, plan_id: str, content: Dict[str, Any]) -> Optional[BusinessPlan]:
        if self._collection is None:
            return self._fallback_repo().replace_content(plan_id, content)
        doc = self._run(
            self._collection.find_one_and_update(
                {"plan_id": plan_id},
                {"$set": {"content": content, "updated_at": datetime.now(UTC)}},
                return_document=ReturnDocument.AFTER,
            )
        )
        return self._to_plan(doc) if doc else None

    def _connect(self) -> None:
        mongo_url = os.getenv("MONGO_URL", "mongodb://localhost:27017")
        mongo_db = os.getenv("MONGO_DB", "plancoach")
        try:
            self._client = AsyncIOMotorClient(mongo_url, serverSelectionTimeoutMS=500)
            self._run(self._client.server_info())
            self._collection = self._client[mongo_db]["business_plans"]
            self._run(self._collection.create_index("plan_id", unique=True))
            self._run(self._collection.create_index("user_id"))
        except PyMongoError as exc:
            LOG.warning("mongo_unavailable_using_memory", extra={"err": str(exc)})
            self._client = None
            self._collection = None

    def _fallback_repo(self) -> InMemoryPlanRepository:
        global _SHARED_FALLBACK_REPO
        if _SHARED_FALLBACK_REPO is None:
            _SHARED_FALLBACK_REPO = InMemoryPlanRepository()
        if self._fallback is None:
            self._fallback = _SHARED_FALLBACK_REPO
        return self._fallback

    def _run(self, coro: Any) -> Any:
        if not asyncio.iscoroutine(coro) and not asyncio.isfuture(coro):
            return coro
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(coro)
        finally:
            loop.close()

    def _generate_plan_id(self) -> str:
        year = datetime.now(UTC).year
        counter = 0
        latest = self._run(
            self._collection.find({}, {"plan_id": 1}).sort("plan_id", DESCENDING).limit(1).to_list(length=1)
        )
        if latest:
            counter = plan_sequence(str(latest[0].get("plan_id", "")))
        return f"BP-{year}-{counter + 1:04d}"

    def _to_plan(self, doc: Dict[str, Any]) -> BusinessPlan:
        doc = dict(doc)
        doc.pop("_id", None)
        return BusinessPlan(**doc)
