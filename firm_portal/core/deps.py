"""FastAPI dependencies: principal, network context, role gates."""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from firm_portal.core.config import settings
from firm_portal.core.exceptions import ForbiddenError, UnauthorizedError
from firm_portal.core.security import Principal, decode_session_token
from firm_portal.db.base import get_db
from firm_portal.domain.firm import Firm
from firm_portal.schemas.audit import NetworkContext
from firm_portal.services.access import AccessClassifier


def get_principal(request: Request) -> Principal:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise UnauthorizedError()
    return decode_session_token(token.strip())


def get_network_context(request: Request) -> NetworkContext:
    """Client IP and user agent for audit rows.

    X-Forwarded-For is trusted only when TRUST_PROXY_HEADERS is set.
    """
    ip = None
    if settings.trust_proxy_headers:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            ip = forwarded.split(",")[0].strip()
    if ip is None and request.client:
        ip = request.client.host
    ua = request.headers.get("user-agent") or None
    return NetworkContext(ip_address=ip, user_agent=ua[:512] if ua else None)


def get_classifier(session: AsyncSession = Depends(get_db)) -> AccessClassifier:
    return AccessClassifier(session, settings.admin_email)


async def require_admin(
    principal: Principal = Depends(get_principal),
    classifier: AccessClassifier = Depends(get_classifier),
) -> Principal:
    if not classifier.is_admin(principal.email):
        raise ForbiddenError("Admin access required")
    return principal


async def require_firm(
    principal: Principal = Depends(get_principal),
    classifier: AccessClassifier = Depends(get_classifier),
) -> Firm:
    firm = await classifier.active_firm(principal.email)
    if firm is None:
        raise ForbiddenError("Firm access required")
    return firm
