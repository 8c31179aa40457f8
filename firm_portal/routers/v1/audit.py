"""Audit log listing router (admin only)."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from firm_portal.core.deps import require_admin
from firm_portal.core.pagination import PaginationParams
from firm_portal.core.response import ListResponse, paginated
from firm_portal.core.security import Principal
from firm_portal.db.base import get_db
from firm_portal.schemas.audit import AuditLogOut
from firm_portal.services.audit import AuditLogReader

router = APIRouter(prefix="/audit-logs", tags=["Audit"])


@router.get("", response_model=ListResponse[AuditLogOut])
async def list_audit_logs(
    entity_id: Optional[str] = Query(default=None, alias="entityId"),
    entity_type: Optional[str] = Query(default=None, alias="entityType"),
    action: Optional[str] = Query(default=None),
    actor: Optional[str] = Query(default=None),
    pagination: PaginationParams = Depends(),
    session: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_admin),
):
    items, total = await AuditLogReader(session).list_entries(
        pagination,
        entity_id=entity_id,
        entity_type=entity_type,
        action=action,
        actor=actor,
    )
    return paginated(
        [AuditLogOut.model_validate(e) for e in items],
        total, pagination.page, pagination.limit,
    )
