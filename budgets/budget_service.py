from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import ROUND_CEILING, Decimal
from typing import Callable, Iterable, List, Optional, Protocol

from budgets.budget_model import (
    BudgetCreate,
    BudgetFilters,
    BudgetInfo,
    BudgetRecord,
    BudgetStatus,
    BudgetSuggestion,
    BudgetSummary,
    BudgetUpdate,
    BulkCreateError,
    BulkCreateResult,
    CategoryRef,
    ProjectedSpending,
    RolloverResult,
    RolloverSkip,
)
from budgets.budget_repo import BudgetRepo
from budgets.calculations import (
    HUNDRED,
    MAX_BUDGET_YEAR,
    ZERO,
    days_remaining,
    evaluate_status,
    month_window,
    next_period,
    previous_period,
    project_spending,
    to_money,
)
from budgets.errors import (
    BudgetError,
    BudgetStateError,
    DuplicateBudgetError,
    NotFoundError,
    ValidationError,
)
from settings.config import settings

logger = logging.getLogger(__name__)

CATEGORY_UNAVAILABLE = "category_unavailable"
YEAR_OUT_OF_RANGE = "year_out_of_range"


class TransactionLedger(Protocol):
    async def sum_expenses(self, user_id: uuid.UUID, category_id: int, start_date: date, end_date: date) -> Decimal:
        ...


class CategoryStore(Protocol):
    async def get(self, category_id: int) -> Optional[CategoryRef]:
        ...


def _category_visible(category: CategoryRef, user_id: uuid.UUID) -> bool:
    return category.user_id is None or category.user_id == user_id


class BudgetService:
    """
    Budget tracking for one request or job run.

    Reads spend from the transaction ledger, category metadata from the
    category store, and persists budgets through BudgetRepo. All date-relative
    behaviour goes through `clock` so callers and tests control "today".
    """

    def __init__(
        self,
        budgets: BudgetRepo,
        ledger: TransactionLedger,
        categories: CategoryStore,
        clock: Callable[[], date] = date.today,
        default_alert_threshold: Optional[int] = None,
        suggestion_margin: Optional[Decimal] = None,
    ) -> None:
        self._budgets = budgets
        self._ledger = ledger
        self._categories = categories
        self._clock = clock
        self._default_alert_threshold = default_alert_threshold or settings.DEFAULT_ALERT_THRESHOLD
        self._suggestion_margin = settings.SUGGESTION_MARGIN if suggestion_margin is None else suggestion_margin

    def today(self) -> date:
        return self._clock()

    # --- lookups -----------------------------------------------------------

    async def _require_budget(self, user_id: uuid.UUID, budget_id: int) -> BudgetRecord:
        budget = await self._budgets.get(budget_id, user_id)
        if budget is None:
            raise NotFoundError()
        return budget

    async def _require_budgetable_category(self, user_id: uuid.UUID, category_id: int) -> CategoryRef:
        category = await self._categories.get(category_id)
        if category is None or not _category_visible(category, user_id):
            raise ValidationError.for_field("category_id", "Category not found")
        if not category.is_active:
            raise ValidationError.for_field("category_id", "Category is not available")
        if category.type == "income":
            raise ValidationError.for_field("category_id", "Budgets cannot be created for income categories")
        return category

    # --- per-budget computations -------------------------------------------

    async def calculate_spent(self, budget: BudgetRecord) -> Decimal:
        start, end = month_window(budget.month, budget.year)
        total = await self._ledger.sum_expenses(budget.user_id, budget.category_id, start, end)
        return to_money(total)

    async def get_status(self, budget: BudgetRecord) -> BudgetStatus:
        spent = await self.calculate_spent(budget)
        return evaluate_status(budget.monthly_limit, budget.alert_threshold, spent)

    async def get_projection(self, budget: BudgetRecord, today: Optional[date] = None) -> ProjectedSpending:
        spent = await self.calculate_spent(budget)
        return project_spending(budget.monthly_limit, spent, budget.month, budget.year, today or self.today())

    async def get_full_info(self, budget: BudgetRecord, today: Optional[date] = None) -> BudgetInfo:
        today = today or self.today()
        category = await self._categories.get(budget.category_id)
        spent = await self.calculate_spent(budget)
        status = evaluate_status(budget.monthly_limit, budget.alert_threshold, spent)
        projection = project_spending(budget.monthly_limit, spent, budget.month, budget.year, today)
        return self._info(budget, category, status=status, projection=projection, today=today)

    def _info(
        self,
        budget: BudgetRecord,
        category: Optional[CategoryRef],
        today: date,
        status: Optional[BudgetStatus] = None,
        projection: Optional[ProjectedSpending] = None,
        error: Optional[str] = None,
    ) -> BudgetInfo:
        return BudgetInfo(
            id=budget.id,
            category_id=budget.category_id,
            category=category,
            monthly_limit=to_money(budget.monthly_limit),
            alert_threshold=budget.alert_threshold,
            month=budget.month,
            year=budget.year,
            is_active=budget.is_active,
            description=budget.description,
            status=status,
            projection=projection,
            days_remaining=days_remaining(budget.month, budget.year, today),
            created_at=budget.created_at,
            updated_at=budget.updated_at,
            error=error,
        )

    async def _describe_for_portfolio(self, budget: BudgetRecord, today: date) -> BudgetInfo:
        """Like get_full_info, but failures are annotated on the item instead of raised."""
        category = await self._categories.get(budget.category_id)
        if category is None or not category.is_active:
            logger.warning("Budget %s references unavailable category %s", budget.id, budget.category_id)
            return self._info(budget, category, today=today, error=CATEGORY_UNAVAILABLE)
        try:
            spent = await self.calculate_spent(budget)
            status = evaluate_status(budget.monthly_limit, budget.alert_threshold, spent)
            projection = project_spending(budget.monthly_limit, spent, budget.month, budget.year, today)
        except BudgetError as e:
            logger.warning("Could not evaluate budget %s: %s", budget.id, e.message)
            return self._info(budget, category, today=today, error=e.message)
        return self._info(budget, category, status=status, projection=projection, today=today)

    async def _portfolio(self, budgets: Iterable[BudgetRecord], today: date) -> List[BudgetInfo]:
        return [await self._describe_for_portfolio(b, today) for b in budgets]

    # --- CRUD ----------------------------------------------------------------

    async def create_budget(self, user_id: uuid.UUID, data: BudgetCreate) -> BudgetInfo:
        await self._require_budgetable_category(user_id, data.category_id)

        existing = await self._budgets.find_active(user_id, data.category_id, data.month, data.year)
        if existing is not None:
            raise DuplicateBudgetError(existing_id=existing.id)

        description = (data.description or "").strip() or None
        budget = await self._budgets.create(
            user_id=user_id,
            category_id=data.category_id,
            monthly_limit=to_money(data.monthly_limit),
            alert_threshold=data.alert_threshold or self._default_alert_threshold,
            month=data.month,
            year=data.year,
            description=description,
        )
        logger.info("Created budget %s for user %s (%02d/%d)", budget.id, user_id, budget.month, budget.year)
        return await self.get_full_info(budget)

    async def create_many(self, user_id: uuid.UUID, items: List[BudgetCreate]) -> BulkCreateResult:
        created: List[BudgetInfo] = []
        errors: List[BulkCreateError] = []
        for item in items:
            try:
                created.append(await self.create_budget(user_id, item))
            except BudgetError as e:
                errors.append(BulkCreateError(category_id=item.category_id, error=e.message))
        return BulkCreateResult(created=len(created), failed=len(errors), budgets=created, errors=errors)

    async def list_budgets(self, user_id: uuid.UUID, filters: Optional[BudgetFilters] = None) -> List[BudgetInfo]:
        filters = filters or BudgetFilters()
        is_active = None if filters.status is None else filters.status == "active"
        budgets = await self._budgets.list_for_user(user_id, month=filters.month, year=filters.year, is_active=is_active)
        return await self._portfolio(budgets, self.today())

    async def get_budget(self, user_id: uuid.UUID, budget_id: int) -> BudgetInfo:
        budget = await self._require_budget(user_id, budget_id)
        return await self.get_full_info(budget)

    async def update_budget(self, user_id: uuid.UUID, budget_id: int, data: BudgetUpdate) -> BudgetInfo:
        budget = await self._require_budget(user_id, budget_id)
        if not budget.is_active:
            raise BudgetStateError("Cannot edit a deactivated budget")

        changes = data.model_dump(exclude_unset=True)
        # limit and threshold are required columns; an explicit null means "leave as is"
        for key in ("monthly_limit", "alert_threshold"):
            if key in changes and changes[key] is None:
                del changes[key]
        if "monthly_limit" in changes:
            changes["monthly_limit"] = to_money(changes["monthly_limit"])
        if "description" in changes:
            changes["description"] = (changes["description"] or "").strip() or None
        if not changes:
            return await self.get_full_info(budget)

        updated = await self._budgets.update(budget_id, user_id, **changes)
        if updated is None:
            raise NotFoundError()
        return await self.get_full_info(updated)

    async def deactivate_budget(self, user_id: uuid.UUID, budget_id: int) -> BudgetRecord:
        budget = await self._require_budget(user_id, budget_id)
        if not budget.is_active:
            raise BudgetStateError("Budget is already deactivated")
        updated = await self._budgets.set_active(budget_id, user_id, False)
        if updated is None:
            raise NotFoundError()
        logger.info("Deactivated budget %s", budget_id)
        return updated

    async def activate_budget(self, user_id: uuid.UUID, budget_id: int) -> BudgetRecord:
        budget = await self._require_budget(user_id, budget_id)
        if budget.is_active:
            raise BudgetStateError("Budget is already active")
        existing = await self._budgets.find_active(user_id, budget.category_id, budget.month, budget.year)
        if existing is not None:
            raise DuplicateBudgetError(existing_id=existing.id)
        updated = await self._budgets.set_active(budget_id, user_id, True)
        if updated is None:
            raise NotFoundError()
        logger.info("Activated budget %s", budget_id)
        return updated

    async def delete_budget(self, user_id: uuid.UUID, budget_id: int) -> None:
        if not await self._budgets.delete(budget_id, user_id):
            raise NotFoundError()
        logger.info("Deleted budget %s", budget_id)

    # --- portfolio views -----------------------------------------------------

    async def current_month_budgets(self, user_id: uuid.UUID) -> List[BudgetRecord]:
        today = self.today()
        return await self._budgets.list_active_for_period(user_id, today.month, today.year)

    async def budgets_requiring_alert(self, user_id: uuid.UUID) -> List[BudgetInfo]:
        infos = await self._portfolio(await self.current_month_budgets(user_id), self.today())
        return [i for i in infos if i.status is not None and i.status.should_alert]

    async def exceeded_budgets(self, user_id: uuid.UUID) -> List[BudgetInfo]:
        infos = await self._portfolio(await self.current_month_budgets(user_id), self.today())
        return [i for i in infos if i.status is not None and i.status.is_exceeded]

    async def summary(self, user_id: uuid.UUID, month: Optional[int] = None, year: Optional[int] = None) -> BudgetSummary:
        today = self.today()
        month = month or today.month
        year = year or today.year
        budgets = await self._budgets.list_active_for_period(user_id, month, year)
        infos = await self._portfolio(budgets, today)

        evaluated = [i for i in infos if i.status is not None]
        errors = [i for i in infos if i.status is None]

        total_limit = sum((i.status.monthly_limit for i in evaluated), ZERO)
        total_spent = sum((i.status.current_spent for i in evaluated), ZERO)
        overall = to_money(total_spent / total_limit * HUNDRED) if total_limit > 0 else ZERO

        return BudgetSummary(
            month=month,
            year=year,
            total_budgets=len(evaluated),
            total_limit=total_limit,
            total_spent=total_spent,
            total_remaining=total_limit - total_spent,
            overall_percentage=overall,
            exceeded_count=sum(1 for i in evaluated if i.status.is_exceeded),
            alert_count=sum(1 for i in evaluated if i.status.should_alert),
            budgets=evaluated,
            errors=errors,
        )

    # --- suggestion ----------------------------------------------------------

    async def suggest_budget(self, user_id: uuid.UUID, category_id: int, months: int = 3) -> BudgetSuggestion:
        if not 1 <= months <= 12:
            raise ValidationError.for_field("months", "months must be between 1 and 12")
        category = await self._require_budgetable_category(user_id, category_id)

        # The `months` full calendar months before the current one
        today = self.today()
        end_month, end_year = previous_period(today.month, today.year)
        start_month, start_year = end_month, end_year
        for _ in range(months - 1):
            start_month, start_year = previous_period(start_month, start_year)
        start, _ = month_window(start_month, start_year)
        _, end = month_window(end_month, end_year)

        historical = to_money(await self._ledger.sum_expenses(user_id, category_id, start, end))
        average = to_money(historical / months)
        suggested = (average * (1 + self._suggestion_margin)).to_integral_value(rounding=ROUND_CEILING)
        return BudgetSuggestion(
            category_id=category_id,
            category_name=category.name,
            months_analyzed=months,
            historical_total=historical,
            average_monthly=average,
            suggested_limit=to_money(suggested),
            margin=self._suggestion_margin,
        )

    # --- roll-over -----------------------------------------------------------

    async def users_due_for_roll_over(self, today: Optional[date] = None) -> List[uuid.UUID]:
        today = today or self.today()
        return await self._budgets.list_users_with_active_budgets(today.month, today.year)

    async def roll_over(self, user_id: uuid.UUID, today: Optional[date] = None) -> RolloverResult:
        """
        Copy the user's active budgets of the current month into the next month.

        Safe to run repeatedly: a target period that already holds an active
        budget for the category is skipped, including when a concurrent run
        wins the insert.
        """
        today = today or self.today()
        target_month, target_year = next_period(today.month, today.year)
        result = RolloverResult(
            source_month=today.month,
            source_year=today.year,
            target_month=target_month,
            target_year=target_year,
        )

        for budget in await self._budgets.list_active_for_period(user_id, today.month, today.year):
            if target_year > MAX_BUDGET_YEAR:
                result.skipped.append(
                    RolloverSkip(source_id=budget.id, category_id=budget.category_id, reason=YEAR_OUT_OF_RANGE)
                )
                continue

            category = await self._categories.get(budget.category_id)
            if category is None or not category.is_active:
                result.skipped.append(
                    RolloverSkip(source_id=budget.id, category_id=budget.category_id, reason=CATEGORY_UNAVAILABLE)
                )
                continue

            existing = await self._budgets.find_active(user_id, budget.category_id, target_month, target_year)
            if existing is None:
                try:
                    created = await self._budgets.create(
                        user_id=budget.user_id,
                        category_id=budget.category_id,
                        monthly_limit=budget.monthly_limit,
                        alert_threshold=budget.alert_threshold,
                        month=target_month,
                        year=target_year,
                        description=budget.description,
                    )
                except DuplicateBudgetError:
                    existing = await self._budgets.find_active(user_id, budget.category_id, target_month, target_year)
                else:
                    result.created.append(created)
                    continue

            result.skipped.append(
                RolloverSkip(
                    source_id=budget.id,
                    category_id=budget.category_id,
                    reason="already_exists",
                    existing_id=existing.id if existing else None,
                )
            )

        logger.info(
            "Roll-over %02d/%d -> %02d/%d for user %s: %d created, %d skipped",
            result.source_month,
            result.source_year,
            target_month,
            target_year,
            user_id,
            len(result.created),
            len(result.skipped),
        )
        return result
