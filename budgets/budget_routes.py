from __future__ import annotations

import uuid
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status

from budgets.budget_model import (
    BudgetBulkCreate,
    BudgetCreate,
    BudgetFilters,
    BudgetInfo,
    BudgetRecord,
    BudgetSuggestion,
    BudgetSummary,
    BudgetUpdate,
    BulkCreateResult,
    RolloverResult,
)
from budgets.budget_service import BudgetService
from settings.deps import get_budget_service, get_current_user_id


router = APIRouter(prefix="/budgets", tags=["budgets"])


@router.post("/", response_model=BudgetInfo, status_code=status.HTTP_201_CREATED)
async def create_budget(
    body: BudgetCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
) -> BudgetInfo:
    return await service.create_budget(user_id, body)


@router.post("/bulk", response_model=BulkCreateResult, status_code=status.HTTP_201_CREATED)
async def create_budgets(
    body: BudgetBulkCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
) -> BulkCreateResult:
    return await service.create_many(user_id, body.budgets)


@router.get("/", response_model=List[BudgetInfo])
async def list_budgets(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2020, le=2100),
    status_filter: Optional[Literal["active", "inactive"]] = Query(None, alias="status"),
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
) -> List[BudgetInfo]:
    filters = BudgetFilters(month=month, year=year, status=status_filter)
    return await service.list_budgets(user_id, filters)


@router.get("/current", response_model=BudgetSummary)
async def current_month_budgets(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
) -> BudgetSummary:
    return await service.summary(user_id)


@router.get("/alerts", response_model=List[BudgetInfo])
async def budgets_requiring_alert(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
) -> List[BudgetInfo]:
    return await service.budgets_requiring_alert(user_id)


@router.get("/exceeded", response_model=List[BudgetInfo])
async def exceeded_budgets(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
) -> List[BudgetInfo]:
    return await service.exceeded_budgets(user_id)


@router.get("/summary", response_model=BudgetSummary)
async def budget_summary(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2020, le=2100),
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
) -> BudgetSummary:
    return await service.summary(user_id, month=month, year=year)


@router.get("/suggest", response_model=BudgetSuggestion)
async def suggest_budget(
    category_id: int = Query(..., ge=1),
    months: int = Query(3, ge=1, le=12),
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
) -> BudgetSuggestion:
    return await service.suggest_budget(user_id, category_id, months=months)


@router.post("/next-month", response_model=RolloverResult)
async def create_next_month_budgets(
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
) -> RolloverResult:
    return await service.roll_over(user_id)


@router.get("/{budget_id}", response_model=BudgetInfo)
async def get_budget(
    budget_id: int,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
) -> BudgetInfo:
    return await service.get_budget(user_id, budget_id)


@router.put("/{budget_id}", response_model=BudgetInfo)
async def update_budget(
    budget_id: int,
    body: BudgetUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
) -> BudgetInfo:
    return await service.update_budget(user_id, budget_id, body)


@router.post("/{budget_id}/deactivate", response_model=BudgetRecord)
async def deactivate_budget(
    budget_id: int,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
) -> BudgetRecord:
    return await service.deactivate_budget(user_id, budget_id)


@router.post("/{budget_id}/activate", response_model=BudgetRecord)
async def activate_budget(
    budget_id: int,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
) -> BudgetRecord:
    return await service.activate_budget(user_id, budget_id)


@router.delete("/{budget_id}")
async def delete_budget(
    budget_id: int,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service),
) -> Dict[str, Any]:
    await service.delete_budget(user_id, budget_id)
    return {"status": "deleted", "id": budget_id}
