from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import Select, delete, desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from budgets.budget_model import BudgetRecord
from budgets.errors import DuplicateBudgetError
from db.models import Budget


UNIQUE_ACTIVE_PERIOD = "uq_budgets_active_period"


def _is_duplicate(exc: IntegrityError) -> bool:
    return UNIQUE_ACTIVE_PERIOD in str(exc.orig)


class BudgetRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        user_id: uuid.UUID,
        category_id: int,
        monthly_limit: Decimal,
        alert_threshold: int,
        month: int,
        year: int,
        description: Optional[str] = None,
    ) -> BudgetRecord:
        budget = Budget(
            user_id=user_id,
            category_id=category_id,
            monthly_limit=monthly_limit,
            alert_threshold=alert_threshold,
            month=month,
            year=year,
            description=description,
            is_active=True,
        )
        # Savepoint so a unique violation leaves the outer transaction usable
        try:
            async with self._session.begin_nested():
                self._session.add(budget)
                await self._session.flush()
        except IntegrityError as e:
            if _is_duplicate(e):
                raise DuplicateBudgetError() from e
            raise
        await self._session.refresh(budget)
        return BudgetRecord.model_validate(budget)

    async def _get_row(self, budget_id: int, user_id: uuid.UUID) -> Optional[Budget]:
        stmt = select(Budget).where(Budget.id == budget_id, Budget.user_id == user_id)
        res = await self._session.execute(stmt)
        return res.scalar_one_or_none()

    async def get(self, budget_id: int, user_id: uuid.UUID) -> Optional[BudgetRecord]:
        row = await self._get_row(budget_id, user_id)
        return BudgetRecord.model_validate(row) if row else None

    async def find_active(self, user_id: uuid.UUID, category_id: int, month: int, year: int) -> Optional[BudgetRecord]:
        stmt = select(Budget).where(
            Budget.user_id == user_id,
            Budget.category_id == category_id,
            Budget.month == month,
            Budget.year == year,
            Budget.is_active.is_(True),
        )
        res = await self._session.execute(stmt)
        row = res.scalar_one_or_none()
        return BudgetRecord.model_validate(row) if row else None

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        month: Optional[int] = None,
        year: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> List[BudgetRecord]:
        stmt: Select[tuple[Budget]] = select(Budget).where(Budget.user_id == user_id)
        if month is not None:
            stmt = stmt.where(Budget.month == month)
        if year is not None:
            stmt = stmt.where(Budget.year == year)
        if is_active is not None:
            stmt = stmt.where(Budget.is_active.is_(is_active))
        stmt = stmt.order_by(desc(Budget.year), desc(Budget.month), Budget.category_id)
        res = await self._session.execute(stmt)
        return [BudgetRecord.model_validate(b) for b in res.scalars().all()]

    async def list_active_for_period(self, user_id: uuid.UUID, month: int, year: int) -> List[BudgetRecord]:
        return await self.list_for_user(user_id, month=month, year=year, is_active=True)

    async def list_users_with_active_budgets(self, month: int, year: int) -> List[uuid.UUID]:
        stmt = (
            select(Budget.user_id)
            .where(Budget.month == month, Budget.year == year, Budget.is_active.is_(True))
            .distinct()
        )
        res = await self._session.execute(stmt)
        return list(res.scalars().all())

    async def update(self, budget_id: int, user_id: uuid.UUID, **fields: Any) -> Optional[BudgetRecord]:
        row = await self._get_row(budget_id, user_id)
        if row is None:
            return None
        for name, value in fields.items():
            setattr(row, name, value)
        await self._session.flush()
        await self._session.refresh(row)
        return BudgetRecord.model_validate(row)

    async def set_active(self, budget_id: int, user_id: uuid.UUID, active: bool) -> Optional[BudgetRecord]:
        row = await self._get_row(budget_id, user_id)
        if row is None:
            return None
        try:
            async with self._session.begin_nested():
                row.is_active = active
                await self._session.flush()
        except IntegrityError as e:
            if _is_duplicate(e):
                raise DuplicateBudgetError() from e
            raise
        await self._session.refresh(row)
        return BudgetRecord.model_validate(row)

    async def delete(self, budget_id: int, user_id: uuid.UUID) -> bool:
        stmt = delete(Budget).where(Budget.id == budget_id, Budget.user_id == user_id)
        res = await self._session.execute(stmt)
        return bool(res.rowcount)
