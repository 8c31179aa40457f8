"""Audit log writer and reader.

Every mutation in the system records exactly one row per affected entity
through :class:`AuditLogWriter`. The row is flushed in the caller's session,
so a failed audit write fails the triggering operation with it.

Security guidelines:
- NEVER put secrets in details (passwords, verification codes)
- Token rows are referenced by id, never by token string
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from firm_portal.core.pagination import PaginationParams
from firm_portal.domain.audit import AuditLog
from firm_portal.domain.mixins import utcnow
from firm_portal.repositories.audit import AuditLogRepository
from firm_portal.schemas.audit import AuditDetails, NetworkContext

logger = logging.getLogger(__name__)


def _split_details(
    details: AuditDetails | dict[str, Any] | None,
) -> tuple[Any, Any, Any]:
    """Return (old_value, new_value, metadata) for storage."""
    if details is None:
        return None, None, None
    if isinstance(details, AuditDetails):
        return (
            details.old_value,
            details.new_value,
            details.metadata(),
        )
    # Generic fallback: accept the same three keys, anything else is metadata
    extra = {k: v for k, v in details.items() if k not in ("oldValue", "newValue", "metadata")}
    metadata = details.get("metadata")
    if extra:
        metadata = {**(metadata or {}), **extra}
    return details.get("oldValue"), details.get("newValue"), metadata


class AuditLogWriter:
    def __init__(self, session: AsyncSession, clock: Callable[[], datetime] = utcnow):
        self._repo = AuditLogRepository(session)
        self._clock = clock

    async def record(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        actor: str,
        actor_type: str,
        details: AuditDetails | dict[str, Any] | None = None,
        network: NetworkContext | None = None,
        timestamp: datetime | None = None,
    ) -> AuditLog:
        old_value, new_value, metadata = _split_details(details)
        entry = await self._repo.create(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            actor=actor,
            actor_type=actor_type,
            old_value=old_value,
            new_value=new_value,
            extra=metadata,
            ip_address=network.ip_address if network else None,
            user_agent=network.user_agent if network else None,
            timestamp=timestamp or self._clock(),
        )
        logger.debug("audit %s %s/%s by %s", action, entity_type, entity_id, actor_type)
        return entry


class AuditLogReader:
    def __init__(self, session: AsyncSession):
        self._repo = AuditLogRepository(session)

    async def list_entries(
        self,
        pagination: PaginationParams,
        *,
        entity_id: str | None = None,
        entity_type: str | None = None,
        action: str | None = None,
        actor: str | None = None,
    ) -> tuple[list[AuditLog], int]:
        filters = {
            "entity_id": entity_id,
            "entity_type": entity_type,
            "action": action,
            "actor": actor,
        }
        return await self._repo.list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
            filters=filters,
        )
