"""Access classification and admin session routes (any authenticated principal)."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from firm_portal.core.config import settings
from firm_portal.core.deps import get_classifier, get_network_context, get_principal
from firm_portal.core.response import DataResponse
from firm_portal.core.security import Principal
from firm_portal.db.base import get_db
from firm_portal.schemas.access import (
    LANDING_PATHS,
    AccessOut,
    AdminCheckOut,
    AdminSessionRequest,
)
from firm_portal.schemas.audit import NetworkContext
from firm_portal.services.access import AccessClassifier, AdminService

router = APIRouter(prefix="/access", tags=["Access"])


@router.get("/me", response_model=DataResponse[AccessOut])
async def classify_me(
    principal: Principal = Depends(get_principal),
    classifier: AccessClassifier = Depends(get_classifier),
):
    """Role of the caller and where the frontend should send them."""
    role = await classifier.classify(principal.email)
    return {"data": AccessOut(email=principal.email, role=role, redirect_to=LANDING_PATHS[role])}


@router.get("/verify-admin", response_model=DataResponse[AdminCheckOut])
async def verify_admin(
    principal: Principal = Depends(get_principal),
    classifier: AccessClassifier = Depends(get_classifier),
):
    return {"data": AdminCheckOut(is_admin=classifier.is_admin(principal.email), email=principal.email)}


@router.post("/admin-session", status_code=204)
async def admin_session(
    body: AdminSessionRequest,
    principal: Principal = Depends(get_principal),
    session: AsyncSession = Depends(get_db),
    network: NetworkContext = Depends(get_network_context),
):
    """Record an admin sign-in: refresh the admin_users row and log the login."""
    svc = AdminService(session, settings.admin_email)
    identity_ref = body.identity_ref or principal.identity_ref
    await svc.ensure_admin_user(principal.email, identity_ref, network)
    await svc.log_admin_login(principal.email, identity_ref, network)
