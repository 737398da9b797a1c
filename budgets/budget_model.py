from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class BudgetCreate(BaseModel):
    category_id: int = Field(ge=1)
    monthly_limit: Decimal = Field(gt=0, max_digits=15, decimal_places=2)
    alert_threshold: Optional[int] = Field(default=None, ge=1, le=100)
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2020, le=2100)
    description: Optional[str] = Field(default=None, max_length=300)


class BudgetBulkCreate(BaseModel):
    budgets: List[BudgetCreate] = Field(min_length=1, max_length=20)


class BudgetUpdate(BaseModel):
    monthly_limit: Optional[Decimal] = Field(default=None, gt=0, max_digits=15, decimal_places=2)
    alert_threshold: Optional[int] = Field(default=None, ge=1, le=100)
    description: Optional[str] = Field(default=None, max_length=300)


class BudgetFilters(BaseModel):
    month: Optional[int] = Field(default=None, ge=1, le=12)
    year: Optional[int] = Field(default=None, ge=2020, le=2100)
    status: Optional[Literal["active", "inactive"]] = None


class CategoryRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: Optional[uuid.UUID] = None
    name: str
    type: str
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: bool = True


class BudgetRecord(BaseModel):
    """A stored budget row, detached from the session."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: uuid.UUID
    category_id: int
    monthly_limit: Decimal
    alert_threshold: int
    month: int
    year: int
    is_active: bool = True
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BudgetStatus(BaseModel):
    current_spent: Decimal
    monthly_limit: Decimal
    remaining: Decimal
    percentage: Decimal
    is_exceeded: bool
    should_alert: bool


class ProjectedSpending(BaseModel):
    daily_average: Decimal
    projected_total: Decimal
    will_exceed: bool
    projected_excess: Decimal


class BudgetInfo(BaseModel):
    id: int
    category_id: int
    category: Optional[CategoryRef] = None
    monthly_limit: Decimal
    alert_threshold: int
    month: int
    year: int
    is_active: bool
    description: Optional[str] = None
    status: Optional[BudgetStatus] = None
    projection: Optional[ProjectedSpending] = None
    days_remaining: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Set when this budget could not be evaluated; such items are left out of totals
    error: Optional[str] = None


class BudgetSummary(BaseModel):
    month: int
    year: int
    total_budgets: int
    total_limit: Decimal
    total_spent: Decimal
    total_remaining: Decimal
    overall_percentage: Decimal
    exceeded_count: int
    alert_count: int
    budgets: List[BudgetInfo] = []
    errors: List[BudgetInfo] = []


class BulkCreateError(BaseModel):
    category_id: int
    error: str


class BulkCreateResult(BaseModel):
    created: int
    failed: int
    budgets: List[BudgetInfo]
    errors: List[BulkCreateError] = []


class RolloverSkip(BaseModel):
    source_id: int
    category_id: int
    reason: Literal["already_exists", "category_unavailable", "year_out_of_range"]
    existing_id: Optional[int] = None


class RolloverResult(BaseModel):
    source_month: int
    source_year: int
    target_month: int
    target_year: int
    created: List[BudgetRecord] = []
    skipped: List[RolloverSkip] = []


class BudgetSuggestion(BaseModel):
    category_id: int
    category_name: str
    months_analyzed: int
    historical_total: Decimal
    average_monthly: Decimal
    suggested_limit: Decimal
    margin: Decimal
