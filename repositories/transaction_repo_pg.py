from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Transaction


class TransactionLedgerPg:
    """Read-only view over the transactions owned by the ledger service."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def sum_expenses(
        self,
        user_id: uuid.UUID,
        category_id: int,
        start_date: date,
        end_date: date,
    ) -> Decimal:
        stmt = select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.user_id == user_id,
            Transaction.category_id == category_id,
            Transaction.type == "expense",
            Transaction.is_active.is_(True),
            Transaction.txn_date >= start_date,
            Transaction.txn_date <= end_date,
        )
        res = await self._session.execute(stmt)
        total = res.scalar_one()
        return Decimal(total) if not isinstance(total, Decimal) else total
