"""Generic async repository with pagination."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from sqlalchemy import func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from firm_portal.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """Generic read/insert repository.

    Rows in this system are never deleted, so no delete is exposed. Updates
    go through the loaded ORM instance so the session tracks them.
    """

    model: type[ModelT]
    default_order_by: str = "created_at"

    def __init__(self, session: AsyncSession):
        self._session = session

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _base_query(self):
        return select(self.model)

    def _column(self, name: str):
        """Mapped column attribute by name, or None for anything else on the class."""
        if name not in inspect(self.model).column_attrs:
            return None
        return getattr(self.model, name)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_id(self, entity_id: str, *, for_update: bool = False) -> ModelT | None:
        q = self._base_query().where(self.model.id == entity_id)
        if for_update:
            q = q.with_for_update()
        result = await self._session.execute(q)
        return result.scalars().first()

    async def list(
        self,
        *,
        offset: int = 0,
        limit: int = 20,
        order_by: str = "created_at",
        order: str = "desc",
        filters: dict[str, Any] | None = None,
    ) -> tuple[list[ModelT], int]:
        """Return (items, total_count) with pagination and optional column filters."""
        q = self._base_query()

        # Apply simple equality filters
        if filters:
            for col_name, value in filters.items():
                col = self._column(col_name)
                if value is not None and col is not None:
                    q = q.where(col == value)

        # Count
        count_q = select(func.count()).select_from(q.subquery())
        total = (await self._session.execute(count_q)).scalar_one()

        # Order + paginate
        col = self._column(order_by)
        if col is None:
            col = self._column(self.default_order_by)
        if col is not None:
            q = q.order_by(col.desc() if order == "desc" else col.asc())
        q = q.offset(offset).limit(limit)

        items = (await self._session.execute(q)).scalars().all()
        return list(items), total

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def create(self, **kwargs: Any) -> ModelT:
        instance = self.model(**kwargs)
        self._session.add(instance)
        await self._session.flush()  # populate id, surface constraint errors
        return instance

    async def save(self, instance: ModelT) -> ModelT:
        self._session.add(instance)
        await self._session.flush()
        return instance
