"""Admin user repository."""


from sqlalchemy import select

from firm_portal.domain.admin_user import AdminUser
from firm_portal.repositories.base import BaseRepository


class AdminUserRepository(BaseRepository[AdminUser]):
    model = AdminUser

    async def get_by_email(self, email: str) -> AdminUser | None:
        result = await self._session.execute(select(AdminUser).where(AdminUser.email == email))
        return result.scalars().first()
