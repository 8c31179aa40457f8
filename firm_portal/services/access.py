"""Access classifier and admin bookkeeping.

Classification is recomputed on every request; firm status can change between
requests, so nothing here is cached. The admin is a single configured email,
compared exactly. There is no role table and no multi-admin support.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from firm_portal.core.exceptions import ForbiddenError
from firm_portal.domain.admin_user import AdminUser
from firm_portal.domain.firm import Firm
from firm_portal.domain.mixins import utcnow
from firm_portal.repositories.admin_user import AdminUserRepository
from firm_portal.repositories.firm import FirmRepository
from firm_portal.schemas.access import AccessRole
from firm_portal.schemas.audit import (
    ActorType,
    AdminLoginDetails,
    AuditAction,
    EntityType,
    NetworkContext,
)
from firm_portal.services.audit import AuditLogWriter

logger = logging.getLogger(__name__)

NOT_ADMIN_MESSAGE = "Access denied: Not an authorized admin email"


class AccessClassifier:
    def __init__(self, session: AsyncSession, admin_email: str):
        self._firms = FirmRepository(session)
        self._admin_email = admin_email

    def is_admin(self, email: str | None) -> bool:
        return bool(email) and email == self._admin_email

    async def classify(self, email: str | None) -> AccessRole:
        if not email:
            return AccessRole.UNRECOGNIZED
        if self.is_admin(email):
            return AccessRole.ADMIN
        firm = await self._firms.get_by_email(email)
        if firm is not None and firm.has_completed_onboarding:
            return AccessRole.FIRM
        return AccessRole.UNRECOGNIZED

    async def active_firm(self, email: str) -> Firm | None:
        """The completed firm for this email, if the principal is a firm."""
        firm = await self._firms.get_by_email(email)
        if firm is None or not firm.has_completed_onboarding:
            return None
        return firm


class AdminService:
    def __init__(
        self,
        session: AsyncSession,
        admin_email: str,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._repo = AdminUserRepository(session)
        self._audit = AuditLogWriter(session, clock)
        self._admin_email = admin_email
        self._clock = clock

    async def ensure_admin_user(
        self, email: str, identity_ref: str | None, network: NetworkContext | None = None
    ) -> AdminUser:
        """Create or refresh the admin_users row. Only a new row is audited."""
        if email != self._admin_email:
            raise ForbiddenError(NOT_ADMIN_MESSAGE)

        now = self._clock()
        admin = await self._repo.get_by_email(email)
        if admin is not None:
            admin.identity_ref = identity_ref
            admin.updated_at = now
            return await self._repo.save(admin)

        admin = await self._repo.create(
            email=email, identity_ref=identity_ref, created_at=now, updated_at=now
        )
        await self._audit.record(
            AuditAction.ADMIN_LOGIN,
            EntityType.ADMIN_USER,
            admin.id,
            email,
            ActorType.ADMIN,
            AdminLoginDetails(identity_ref=identity_ref, first_login=True),
            network,
            timestamp=now,
        )
        logger.info("Admin user record created")
        return admin

    async def log_admin_login(
        self, email: str, identity_ref: str | None, network: NetworkContext | None = None
    ) -> None:
        if email != self._admin_email:
            raise ForbiddenError(NOT_ADMIN_MESSAGE)
        await self._audit.record(
            AuditAction.ADMIN_LOGIN,
            EntityType.ADMIN_USER,
            identity_ref or email,
            email,
            ActorType.ADMIN,
            AdminLoginDetails(identity_ref=identity_ref),
            network,
        )
