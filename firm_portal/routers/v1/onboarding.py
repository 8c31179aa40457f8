"""Public onboarding router. The token in the path is the only credential."""

from __future__ import annotations

from typing import Union

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from firm_portal.core.deps import get_network_context
from firm_portal.core.response import DataResponse
from firm_portal.db.base import get_db
from firm_portal.schemas.audit import NetworkContext
from firm_portal.schemas.onboarding import (
    OnboardingStatus,
    PasswordSetupRequest,
    ResendCodeRequest,
    VerifyCodeRequest,
)
from firm_portal.schemas.token import TokenInvalid, TokenValid
from firm_portal.services.identity import IdentityService, get_identity_service
from firm_portal.services.onboarding import OnboardingOrchestrator

router = APIRouter(prefix="/onboarding", tags=["Onboarding"])


def _svc(session: AsyncSession, identity: IdentityService) -> OnboardingOrchestrator:
    return OnboardingOrchestrator(session, identity)


@router.get("/{token}", response_model=DataResponse[Union[TokenValid, TokenInvalid]])
async def inspect_token(
    token: str,
    session: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service),
):
    """Always 200: ``valid`` tells the page which state to render."""
    return {"data": await _svc(session, identity).inspect(token)}


@router.post("/{token}/password", response_model=DataResponse[OnboardingStatus])
async def submit_password(
    token: str,
    body: PasswordSetupRequest,
    session: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service),
    network: NetworkContext = Depends(get_network_context),
):
    result = await _svc(session, identity).submit_password(token, body.password, network)
    return {"data": result}


@router.post("/{token}/verify", response_model=DataResponse[OnboardingStatus])
async def verify_code(
    token: str,
    body: VerifyCodeRequest,
    session: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service),
    network: NetworkContext = Depends(get_network_context),
):
    result = await _svc(session, identity).verify_code(token, body.attempt_id, body.code, network)
    return {"data": result}


@router.post("/{token}/resend", response_model=DataResponse[OnboardingStatus])
async def resend_code(
    token: str,
    body: ResendCodeRequest,
    session: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service),
):
    return {"data": await _svc(session, identity).resend_code(token, body.attempt_id)}
