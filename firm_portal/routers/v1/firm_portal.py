"""Firm-scoped routes (completed-onboarding firms only)."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from firm_portal.core.deps import require_firm
from firm_portal.core.response import DataResponse
from firm_portal.domain.firm import Firm
from firm_portal.schemas.firm import FirmOut

router = APIRouter(prefix="/firm", tags=["Firm"])


@router.get("/me", response_model=DataResponse[FirmOut])
async def my_firm(firm: Firm = Depends(require_firm)):
    return {"data": FirmOut.model_validate(firm)}
