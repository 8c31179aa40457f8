"""Firm administration router (admin only).

Pattern:
  1. Declare a router with prefix and tags
  2. Inject DB session + admin principal via Depends
  3. Instantiate the service with the session
  4. Call service methods and wrap result in response envelope
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from firm_portal.core.deps import get_network_context, require_admin
from firm_portal.core.pagination import PaginationParams
from firm_portal.core.response import DataResponse, ListResponse, paginated
from firm_portal.core.security import Principal
from firm_portal.db.base import get_db
from firm_portal.schemas.audit import NetworkContext
from firm_portal.schemas.firm import FirmCreate, FirmOut, FirmUpdate
from firm_portal.schemas.token import IssuedToken, TokenOut
from firm_portal.services.firms import FirmRegistry
from firm_portal.services.tokens import TokenEngine

router = APIRouter(prefix="/firms", tags=["Firms"])


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.get("", response_model=ListResponse[FirmOut])
async def list_firms(
    pagination: PaginationParams = Depends(),
    session: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_admin),
):
    """List all firms, newest first (paginated)."""
    items, total = await FirmRegistry(session).list_firms(pagination)
    return paginated(
        [FirmOut.model_validate(f) for f in items],
        total, pagination.page, pagination.limit,
    )


@router.post("", response_model=DataResponse[FirmOut], status_code=status.HTTP_201_CREATED)
async def create_firm(
    body: FirmCreate,
    session: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
    network: NetworkContext = Depends(get_network_context),
):
    """Create a new firm. Onboarding starts once a token is issued."""
    firm = await FirmRegistry(session).create(
        body.name, body.email, admin.email, contact=body, network=network
    )
    return {"data": FirmOut.model_validate(firm)}


@router.get("/{firm_id}", response_model=DataResponse[FirmOut])
async def get_firm(
    firm_id: str,
    session: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_admin),
):
    firm = await FirmRegistry(session).get_firm(firm_id)
    return {"data": FirmOut.model_validate(firm)}


@router.patch("/{firm_id}", response_model=DataResponse[FirmOut])
async def update_firm(
    firm_id: str,
    body: FirmUpdate,
    session: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
    network: NetworkContext = Depends(get_network_context),
):
    firm = await FirmRegistry(session).update(firm_id, body, admin.email, network)
    return {"data": FirmOut.model_validate(firm)}


@router.post(
    "/{firm_id}/tokens",
    response_model=DataResponse[IssuedToken],
    status_code=status.HTTP_201_CREATED,
)
async def issue_token(
    firm_id: str,
    force: bool = Query(
        default=False,
        description="Invalidate any unused tokens for the firm and issue a fresh one.",
    ),
    session: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
    network: NetworkContext = Depends(get_network_context),
):
    """Issue a 24-hour onboarding token. Rejected with 409 while a valid one exists unless ``force``."""
    engine = TokenEngine(session)
    if force:
        issued = await engine.force_generate(firm_id, admin.email, network)
    else:
        issued = await engine.generate(firm_id, admin.email, network)
    return {"data": issued}


@router.get("/{firm_id}/tokens/active", response_model=DataResponse[list[TokenOut]])
async def active_tokens(
    firm_id: str,
    session: AsyncSession = Depends(get_db),
    _: Principal = Depends(require_admin),
):
    rows = await TokenEngine(session).active_tokens_for_firm(firm_id)
    return {"data": [TokenOut.model_validate(t) for t in rows]}
