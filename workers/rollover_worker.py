from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date
from functools import partial
from typing import Any, AsyncIterator, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from budgets.budget_repo import BudgetRepo
from budgets.budget_service import BudgetService
from budgets.calculations import is_last_day_of_month
from db.postgres import close_postgres, get_session_factory
from repositories.category_repo_pg import CategoryRepositoryPg
from repositories.transaction_repo_pg import TransactionLedgerPg
from settings.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def budget_service_scope(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[BudgetService]:
    """One session and one transaction per unit of work."""
    async with session_factory() as session:
        try:
            yield BudgetService(
                budgets=BudgetRepo(session),
                ledger=TransactionLedgerPg(session),
                categories=CategoryRepositoryPg(session),
            )
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def _service_scope(ctx: dict[str, Any]) -> Callable[[], Any]:
    scope = ctx.get("service_scope")
    if scope is None:
        scope = partial(budget_service_scope, get_session_factory())
    return scope


async def roll_over_budgets(ctx: dict[str, Any], force: bool = False, today: date | None = None) -> dict:
    """
    Month-end roll-over for every user with active budgets this month.

    Scheduled daily; does nothing unless today is the last day of the month
    or `force` is set. Each user runs in its own transaction so one failure
    doesn't block the others.
    """
    today = today or date.today()
    if not force and not is_last_day_of_month(today):
        logger.debug("Roll-over skipped: %s is not month-end", today.isoformat())
        return {"ran": False, "users": 0, "created": 0, "skipped": 0, "failed": 0}

    scope = _service_scope(ctx)
    async with scope() as service:
        user_ids = await service.users_due_for_roll_over(today)

    created = skipped = failed = 0
    for user_id in user_ids:
        try:
            async with scope() as service:
                result = await service.roll_over(user_id, today=today)
        except Exception:
            logger.exception("Roll-over failed for user %s", user_id)
            failed += 1
            continue
        created += len(result.created)
        skipped += len(result.skipped)

    logger.info(
        "Roll-over run for %s: %d users, %d created, %d skipped, %d failed",
        today.isoformat(),
        len(user_ids),
        created,
        skipped,
        failed,
    )
    return {"ran": True, "users": len(user_ids), "created": created, "skipped": skipped, "failed": failed}


async def startup(ctx: dict[str, Any]) -> None:
    configure_logging()
    ctx["service_scope"] = partial(budget_service_scope, get_session_factory())


async def shutdown(ctx: dict[str, Any]) -> None:
    await close_postgres()
