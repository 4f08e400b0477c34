from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Query, status

from ...domain.errors import NotFoundError
from ...domain.models import BusinessPlan, BusinessPlanCreate, BusinessPlanSummary
from ...infrastructure.plan_repository import get_repo


router = APIRouter(prefix="/business-plans", tags=["business-plans"])


@router.get("", response_model=List[BusinessPlanSummary])
def list_plans(user_id: Optional[str] = Query(default=None)) -> List[BusinessPlanSummary]:
    repo = get_repo()
    return [BusinessPlanSummary(**p.model_dump()) for p in repo.list(user_id)]


@router.post("", response_model=BusinessPlan, status_code=status.HTTP_201_CREATED)
def create_plan(payload: BusinessPlanCreate) -> BusinessPlan:
    repo = get_repo()
    return repo.create(payload)


@router.get("/{plan_id}", response_model=BusinessPlan)
def get_plan(plan_id: str) -> BusinessPlan:
    repo = get_repo()
    plan = repo.get(plan_id)
    if not plan:
        raise NotFoundError()
    return plan
