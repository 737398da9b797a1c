from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from budgets.budget_model import CategoryRef
from db.models import Category


class CategoryRepositoryPg:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, category_id: int) -> Optional[CategoryRef]:
        res = await self._session.execute(select(Category).where(Category.id == category_id))
        row = res.scalar_one_or_none()
        return CategoryRef.model_validate(row) if row else None
