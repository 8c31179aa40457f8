"""Token listing router (admin only)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from firm_portal.core.deps import require_admin
from firm_portal.core.response import DataResponse
from firm_portal.core.security import Principal
from firm_portal.db.base import get_db
from firm_portal.schemas.token import TokenWithFirmOut
from firm_portal.services.tokens import TokenEngine

router = APIRouter(prefix="/tokens", tags=["Tokens"])


@router.get("", response_model=DataResponse[list[TokenWithFirmOut]])
async def list_tokens(
    unused: bool = Query(default=False, description="Only unused tokens (expired ones included)"),
    session: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_admin),
):
    rows = await TokenEngine(session).list_tokens(unused_only=unused)
    return {"data": [TokenWithFirmOut.model_validate(t) for t in rows]}
