from __future__ import annotations

import uuid

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from budgets.budget_repo import BudgetRepo
from budgets.budget_service import BudgetService
from db.postgres import get_async_session
from repositories.category_repo_pg import CategoryRepositoryPg
from repositories.transaction_repo_pg import TransactionLedgerPg


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> uuid.UUID:
	"""
	Resolve the caller from the `X-User-ID` header set by the auth gateway.
	"""
	if not x_user_id:
		raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing X-User-ID header")
	try:
		return uuid.UUID(x_user_id)
	except ValueError:
		raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid X-User-ID header")


async def get_budget_service(session: AsyncSession = Depends(get_async_session)) -> BudgetService:
	"""
	Request-scoped BudgetService bound to the request's AsyncSession.
	"""
	return BudgetService(
		budgets=BudgetRepo(session),
		ledger=TransactionLedgerPg(session),
		categories=CategoryRepositoryPg(session),
	)
