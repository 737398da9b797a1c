import os
import sys

# Ensure project root is on sys.path so `budgets`, `db`, `settings` resolve
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if project_root not in sys.path:
    sys.path.insert(0, project_root)


# --- Test utilities: in-memory stores ---
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

from budgets.budget_model import BudgetRecord, CategoryRef
from budgets.budget_service import BudgetService
from budgets.errors import DuplicateBudgetError


class FakeBudgetRepo:
    """Mirrors BudgetRepo, including the one-active-budget-per-period index."""

    def __init__(self) -> None:
        self._rows: Dict[int, BudgetRecord] = {}
        self._next_id = 1
        self.create_calls = 0

    def _conflict(self, user_id, category_id, month, year, exclude_id=None) -> Optional[BudgetRecord]:
        for row in self._rows.values():
            if (
                row.is_active
                and row.id != exclude_id
                and (row.user_id, row.category_id, row.month, row.year) == (user_id, category_id, month, year)
            ):
                return row
        return None

    def insert(self, **fields) -> BudgetRecord:
        """Store a row as-is, bypassing checks (for corrupt-data scenarios)."""
        now = datetime.now(timezone.utc)
        record = BudgetRecord(id=self._next_id, created_at=now, updated_at=now, **fields)
        self._rows[record.id] = record
        self._next_id += 1
        return record.model_copy()

    async def create(self, user_id, category_id, monthly_limit, alert_threshold, month, year, description=None) -> BudgetRecord:
        self.create_calls += 1
        if self._conflict(user_id, category_id, month, year):
            raise DuplicateBudgetError()
        return self.insert(
            user_id=user_id,
            category_id=category_id,
            monthly_limit=monthly_limit,
            alert_threshold=alert_threshold,
            month=month,
            year=year,
            description=description,
            is_active=True,
        )

    async def get(self, budget_id, user_id) -> Optional[BudgetRecord]:
        row = self._rows.get(budget_id)
        if row is None or row.user_id != user_id:
            return None
        return row.model_copy()

    async def find_active(self, user_id, category_id, month, year) -> Optional[BudgetRecord]:
        row = self._conflict(user_id, category_id, month, year)
        return row.model_copy() if row else None

    async def list_for_user(self, user_id, month=None, year=None, is_active=None) -> List[BudgetRecord]:
        rows = [
            r for r in self._rows.values()
            if r.user_id == user_id
            and (month is None or r.month == month)
            and (year is None or r.year == year)
            and (is_active is None or r.is_active == is_active)
        ]
        rows.sort(key=lambda r: (-r.year, -r.month, r.category_id))
        return [r.model_copy() for r in rows]

    async def list_active_for_period(self, user_id, month, year) -> List[BudgetRecord]:
        return await self.list_for_user(user_id, month=month, year=year, is_active=True)

    async def list_users_with_active_budgets(self, month, year) -> List[uuid.UUID]:
        seen: List[uuid.UUID] = []
        for r in self._rows.values():
            if r.is_active and r.month == month and r.year == year and r.user_id not in seen:
                seen.append(r.user_id)
        return seen

    async def update(self, budget_id, user_id, **fields) -> Optional[BudgetRecord]:
        row = await self.get(budget_id, user_id)
        if row is None:
            return None
        updated = row.model_copy(update={**fields, "updated_at": datetime.now(timezone.utc)})
        self._rows[budget_id] = updated
        return updated.model_copy()

    async def set_active(self, budget_id, user_id, active) -> Optional[BudgetRecord]:
        row = await self.get(budget_id, user_id)
        if row is None:
            return None
        if active and self._conflict(row.user_id, row.category_id, row.month, row.year, exclude_id=row.id):
            raise DuplicateBudgetError()
        return await self.update(budget_id, user_id, is_active=active)

    async def delete(self, budget_id, user_id) -> bool:
        row = await self.get(budget_id, user_id)
        if row is None:
            return False
        del self._rows[budget_id]
        return True

    def all(self) -> List[BudgetRecord]:
        return list(self._rows.values())


@dataclass
class FakeTransaction:
    user_id: uuid.UUID
    category_id: int
    amount: Decimal
    txn_date: date
    type: str = "expense"
    is_active: bool = True


class FakeLedger:
    def __init__(self) -> None:
        self.transactions: List[FakeTransaction] = []

    def add(self, user_id, category_id, amount, txn_date, type="expense", is_active=True) -> None:
        self.transactions.append(FakeTransaction(user_id, category_id, Decimal(str(amount)), txn_date, type, is_active))

    async def sum_expenses(self, user_id, category_id, start_date, end_date) -> Decimal:
        return sum(
            (
                t.amount for t in self.transactions
                if t.user_id == user_id
                and t.category_id == category_id
                and t.type == "expense"
                and t.is_active
                and start_date <= t.txn_date <= end_date
            ),
            Decimal("0"),
        )


class FakeCategoryStore:
    def __init__(self, categories: List[CategoryRef]) -> None:
        self._by_id = {c.id: c for c in categories}

    def deactivate(self, category_id: int) -> None:
        self._by_id[category_id] = self._by_id[category_id].model_copy(update={"is_active": False})

    async def get(self, category_id) -> Optional[CategoryRef]:
        return self._by_id.get(category_id)


class Clock:
    def __init__(self, today: date) -> None:
        self.today = today

    def __call__(self) -> date:
        return self.today


FOOD = 1
SALARY = 2
TRANSPORT = 3
PRIVATE = 4
ARCHIVED = 5


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.UUID("00000000-0000-0000-0000-000000000001")


@pytest.fixture
def other_user_id() -> uuid.UUID:
    return uuid.UUID("00000000-0000-0000-0000-000000000002")


@pytest.fixture
def categories(other_user_id) -> FakeCategoryStore:
    return FakeCategoryStore(
        [
            CategoryRef(id=FOOD, name="Food", type="expense", icon="utensils", color="#FF6B6B"),
            CategoryRef(id=SALARY, name="Salary", type="income"),
            CategoryRef(id=TRANSPORT, name="Transport", type="both", icon="car", color="#4ECDC4"),
            CategoryRef(id=PRIVATE, user_id=other_user_id, name="Someone else's", type="expense"),
            CategoryRef(id=ARCHIVED, name="Archived", type="expense", is_active=False),
        ]
    )


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def budget_repo() -> FakeBudgetRepo:
    return FakeBudgetRepo()


@pytest.fixture
def clock() -> Clock:
    # Day 20 of a 31-day month
    return Clock(date(2025, 10, 20))


@pytest.fixture
def service(budget_repo, ledger, categories, clock) -> BudgetService:
    return BudgetService(
        budgets=budget_repo,
        ledger=ledger,
        categories=categories,
        clock=clock,
        default_alert_threshold=80,
        suggestion_margin=Decimal("0.10"),
    )


@pytest.fixture
def service_scope(service):
    @asynccontextmanager
    async def scope():
        yield service

    return scope
