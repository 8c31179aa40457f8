"""Firm repository."""


from sqlalchemy import select

from firm_portal.domain.firm import Firm
from firm_portal.repositories.base import BaseRepository


class FirmRepository(BaseRepository[Firm]):
    model = Firm

    async def get_by_email(self, email: str, *, for_update: bool = False) -> Firm | None:
        q = select(Firm).where(Firm.email == email)
        if for_update:
            q = q.with_for_update()
        result = await self._session.execute(q)
        return result.scalars().first()

    async def email_taken(self, email: str, *, exclude_id: str | None = None) -> bool:
        q = select(Firm.id).where(Firm.email == email)
        if exclude_id:
            q = q.where(Firm.id != exclude_id)
        result = await self._session.execute(q.limit(1))
        return result.first() is not None
