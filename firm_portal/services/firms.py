"""Firm registry: creates and edits firm tenants and records onboarding completion.

Rule: No FastAPI here. Business rule violations raise AppException subclasses.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from firm_portal.core.exceptions import (
    ConflictError,
    NotFoundError,
    OnboardingAlreadyCompletedError,
)
from firm_portal.core.pagination import PaginationParams
from firm_portal.domain.firm import Firm
from firm_portal.domain.mixins import utcnow
from firm_portal.repositories.firm import FirmRepository
from firm_portal.schemas.audit import (
    ActorType,
    AuditAction,
    EntityType,
    FirmCreatedDetails,
    FirmOnboardingCompletedDetails,
    FirmUpdatedDetails,
    NetworkContext,
)
from firm_portal.schemas.firm import FirmContact, FirmUpdate
from firm_portal.services.audit import AuditLogWriter

logger = logging.getLogger(__name__)

DUPLICATE_EMAIL_MESSAGE = "A firm with this email already exists"


class FirmRegistry:
    def __init__(self, session: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self._session = session
        self._repo = FirmRepository(session)
        self._audit = AuditLogWriter(session, clock)
        self._clock = clock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_firms(self, pagination: PaginationParams) -> tuple[list[Firm], int]:
        return await self._repo.list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
        )

    async def get_firm(self, firm_id: str) -> Firm:
        firm = await self._repo.get_by_id(firm_id)
        if not firm:
            raise NotFoundError("Firm", firm_id)
        return firm

    async def find_by_email(self, email: str) -> Firm | None:
        return await self._repo.get_by_email(email)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(
        self,
        name: str,
        email: str,
        actor_email: str,
        contact: FirmContact | None = None,
        network: NetworkContext | None = None,
    ) -> Firm:
        if await self._repo.email_taken(email):
            raise ConflictError(DUPLICATE_EMAIL_MESSAGE)

        now = self._clock()
        contact_fields = contact.model_dump(include={"contact_person", "phone", "address"}) if contact else {}
        try:
            async with self._session.begin_nested():
                firm = await self._repo.create(
                    name=name,
                    email=email,
                    has_completed_onboarding=False,
                    created_at=now,
                    updated_at=now,
                    **contact_fields,
                )
        except IntegrityError as exc:
            # Lost a race with a concurrent create for the same email
            raise ConflictError(DUPLICATE_EMAIL_MESSAGE) from exc

        await self._audit.record(
            AuditAction.FIRM_CREATED,
            EntityType.FIRM,
            firm.id,
            actor_email,
            ActorType.ADMIN,
            FirmCreatedDetails(
                new_value={
                    "name": name,
                    "email": email,
                    "contactPerson": contact_fields.get("contact_person"),
                    "phone": contact_fields.get("phone"),
                    "address": contact_fields.get("address"),
                }
            ),
            network,
            timestamp=now,
        )
        logger.info("Firm %s created by admin", firm.id)
        return firm

    async def update(
        self,
        firm_id: str,
        changes: FirmUpdate,
        actor_email: str,
        network: NetworkContext | None = None,
    ) -> Firm:
        firm = await self._repo.get_by_id(firm_id, for_update=True)
        if not firm:
            raise NotFoundError("Firm", firm_id)

        data = changes.model_dump(exclude_unset=True)
        new_email = data.get("email")
        if new_email and new_email != firm.email:
            if await self._repo.email_taken(new_email, exclude_id=firm.id):
                raise ConflictError(DUPLICATE_EMAIL_MESSAGE)

        before = firm.snapshot()
        now = self._clock()
        for field, value in data.items():
            setattr(firm, field, value)
        firm.updated_at = now
        try:
            async with self._session.begin_nested():
                await self._repo.save(firm)
        except IntegrityError as exc:
            raise ConflictError(DUPLICATE_EMAIL_MESSAGE) from exc

        await self._audit.record(
            AuditAction.FIRM_UPDATED,
            EntityType.FIRM,
            firm.id,
            actor_email,
            ActorType.ADMIN,
            FirmUpdatedDetails(
                old_value=before,
                new_value=firm.snapshot(),
                changed_fields=sorted(data),
            ),
            network,
            timestamp=now,
        )
        logger.info("Firm %s updated (%s)", firm.id, ", ".join(sorted(data)) or "no fields")
        return firm

    async def complete_onboarding(
        self,
        firm_email: str,
        identity_ref: str,
        *,
        source: str = "interactive",
        network: NetworkContext | None = None,
    ) -> Firm:
        """Mark the firm active. Exactly once: a repeat raises OnboardingAlreadyCompletedError.

        Callers on the reconciliation path treat that error as success; an
        interactive duplicate submission surfaces it to the user.
        """
        firm = await self._repo.get_by_email(firm_email, for_update=True)
        if not firm:
            raise NotFoundError("Firm")
        if firm.has_completed_onboarding:
            raise OnboardingAlreadyCompletedError()

        now = self._clock()
        firm.identity_ref = identity_ref
        firm.has_completed_onboarding = True
        firm.updated_at = now
        await self._repo.save(firm)

        await self._audit.record(
            AuditAction.FIRM_ONBOARDING_COMPLETED,
            EntityType.FIRM,
            firm.id,
            firm_email,
            ActorType.FIRM,
            FirmOnboardingCompletedDetails(
                old_value={"hasCompletedOnboarding": False},
                new_value={"hasCompletedOnboarding": True, "identityRef": identity_ref},
                identity_ref=identity_ref,
                source=source,
            ),
            network,
            timestamp=now,
        )
        logger.info("Firm %s completed onboarding (%s)", firm.id, source)
        return firm
