"""Identity Service webhook endpoint, the out-of-band onboarding reconciliation trigger.

Signature checking and payload parsing live in
:mod:`firm_portal.services.identity_webhooks`; the reconciliation itself in
:mod:`firm_portal.services.onboarding`.
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from firm_portal.core.config import settings
from firm_portal.core.exceptions import AppException
from firm_portal.db.base import get_db
from firm_portal.services.identity import IdentityService, get_identity_service
from firm_portal.services.identity_webhooks import parse_finalized_account, verify_svix_signature
from firm_portal.services.onboarding import OnboardingOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


@router.post("/identity", status_code=200)
async def identity_webhook(
    request: Request,
    session: AsyncSession = Depends(get_db),
    identity: IdentityService = Depends(get_identity_service),
):
    body = await request.body()
    if not settings.clerk_webhook_secret:
        logger.error("Identity webhook received but CLERK_WEBHOOK_SECRET is not configured")
        raise HTTPException(status_code=503, detail="Webhook secret not configured")
    if not verify_svix_signature(body, request.headers, settings.clerk_webhook_secret):
        raise HTTPException(status_code=400, detail="Invalid webhook signature")

    try:
        event = json.loads(body)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail="Malformed webhook payload") from exc
    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="Malformed webhook payload")

    logger.info("Identity webhook %s (%s)", request.headers.get("svix-id"), event.get("type"))
    account = parse_finalized_account(event)
    if account is None:
        return Response(status_code=200)

    try:
        outcome = await OnboardingOrchestrator(session, identity).handle_account_finalized(
            account.email, account.identity_ref
        )
    except AppException as exc:
        # Acknowledge anyway; redelivery cannot fix a business-rule rejection
        logger.error("Reconciliation for finalized account failed: %s", exc.message)
        return Response(status_code=200)
    logger.info("Reconciliation outcome: %s", outcome.value)
    return Response(status_code=200)
