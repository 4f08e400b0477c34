from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class BusinessPlanCreate(BaseModel):
    title: Optional[str] = Field(default=None, description="Plan title; defaults to 'New Business Plan'")
    description: Optional[str] = None
    user_id: Optional[str] = Field(default=None, description="Owner reference from the auth provider")


class BusinessPlan(BaseModel):
    plan_id: str
    title: str
    description: Optional[str] = None
    user_id: Optional[str] = None
    status: str = "draft"
    created_at: datetime
    updated_at: Optional[datetime] = None
    content: Dict[str, Any] = Field(default_factory=dict)


class BusinessPlanSummary(BaseModel):
    plan_id: str
    title: str
    status: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class TopicListing(BaseModel):
    slug: str
    title: str
    data_key: str
    text_key: str
    sectioned: bool = False
    fields: List[str] = Field(default_factory=list)
