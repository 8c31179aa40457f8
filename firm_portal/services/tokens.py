"""Token engine: issues, validates and consumes single-use firm onboarding tokens.

Token lifecycle:
  - A firm holds at most one valid (unused and unexpired) token at a time.
  - ``is_used`` flips False -> True exactly once, through consumption or
    through invalidation when a newer token replaces it. Rows are never deleted.
  - Every flip and every issue writes one audit row.

Rule: No FastAPI here. Pure business logic over repositories.
"""

from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Callable
from datetime import datetime, timedelta
from urllib.parse import urlencode

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from firm_portal.core.config import settings
from firm_portal.core.exceptions import (
    AppException,
    ConflictError,
    ExpiredError,
    NotFoundError,
    TokenUsedError,
)
from firm_portal.domain.firm import Firm
from firm_portal.domain.mixins import utcnow
from firm_portal.domain.token import OnboardingToken
from firm_portal.repositories.firm import FirmRepository
from firm_portal.repositories.token import TokenRepository
from firm_portal.schemas.audit import (
    ActorType,
    AuditAction,
    EntityType,
    NetworkContext,
    TokenGeneratedDetails,
    TokenInvalidatedDetails,
    TokenUsedDetails,
)
from firm_portal.schemas.firm import FirmSummary
from firm_portal.schemas.token import (
    TOKEN_ERROR_MESSAGES,
    IssuedToken,
    TokenError,
    TokenInvalid,
    TokenOut,
    TokenValid,
    TokenValidation,
)
from firm_portal.services.audit import AuditLogWriter

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TOKEN_LENGTH: int = 32
TOKEN_ALPHABET: str = string.ascii_uppercase + string.ascii_lowercase + string.digits

# 62**32 keyspace: hitting this bound means the generator is broken, not unlucky
MAX_TOKEN_DRAWS: int = 1000

ACTIVE_TOKEN_MESSAGE = "This firm already has an active onboarding token"


def generate_token_string() -> str:
    """Draw TOKEN_LENGTH characters uniformly from TOKEN_ALPHABET."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


def onboarding_link(token: str, base_url: str | None = None) -> str:
    base = (base_url or settings.onboarding_base_url).rstrip("/")
    return f"{base}/firm-signup?{urlencode({'token': token})}"


class TokenEngine:
    def __init__(
        self,
        session: AsyncSession,
        *,
        clock: Callable[[], datetime] = utcnow,
        ttl: timedelta | None = None,
        token_factory: Callable[[], str] = generate_token_string,
    ):
        self._session = session
        self._tokens = TokenRepository(session)
        self._firms = FirmRepository(session)
        self._audit = AuditLogWriter(session, clock)
        self._clock = clock
        self._ttl = ttl or timedelta(hours=settings.token_ttl_hours)
        self._token_factory = token_factory

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    async def generate(
        self, firm_id: str, actor_email: str, network: NetworkContext | None = None
    ) -> IssuedToken:
        """Issue a token; reject when the firm still holds a valid one."""
        firm = await self._lock_firm(firm_id)
        now = self._clock()

        unused = await self._tokens.unused_for_firm(firm.id)
        if any(t.is_valid(now) for t in unused):
            raise ConflictError(ACTIVE_TOKEN_MESSAGE)

        # Whatever is left unused has expired; retire it before issuing
        for stale in unused:
            await self._invalidate(stale, firm, actor_email, "expired", now, network)

        row = await self._insert_unique(firm, now)
        await self._audit.record(
            AuditAction.TOKEN_GENERATED,
            EntityType.TOKEN,
            row.id,
            actor_email,
            ActorType.ADMIN,
            TokenGeneratedDetails(
                firm_id=firm.id,
                firm_name=firm.name,
                firm_email=firm.email,
                expires_at=row.expires_at,
            ),
            network,
            timestamp=now,
        )
        logger.info("Token %s issued for firm %s", row.id, firm.id)
        return IssuedToken(
            token_id=row.id,
            token=row.token,
            expires_at=row.expires_at,
            link=onboarding_link(row.token),
            message="Onboarding token generated successfully",
        )

    async def force_generate(
        self, firm_id: str, actor_email: str, network: NetworkContext | None = None
    ) -> IssuedToken:
        """Invalidate every unused token for the firm, then issue a fresh one."""
        firm = await self._lock_firm(firm_id)
        now = self._clock()

        unused = await self._tokens.unused_for_firm(firm.id)
        for old in unused:
            await self._invalidate(old, firm, actor_email, "superseded", now, network)

        row = await self._insert_unique(firm, now)
        await self._audit.record(
            AuditAction.TOKEN_GENERATED,
            EntityType.TOKEN,
            row.id,
            actor_email,
            ActorType.ADMIN,
            TokenGeneratedDetails(
                firm_id=firm.id,
                firm_name=firm.name,
                firm_email=firm.email,
                expires_at=row.expires_at,
                force_generated=True,
                invalidated_tokens=len(unused),
            ),
            network,
            timestamp=now,
        )
        logger.info(
            "Token %s force-issued for firm %s (invalidated %d)", row.id, firm.id, len(unused)
        )
        return IssuedToken(
            token_id=row.id,
            token=row.token,
            expires_at=row.expires_at,
            link=onboarding_link(row.token),
            invalidated_tokens=len(unused),
            message=f"New onboarding token generated (invalidated {len(unused)} existing tokens)",
        )

    # ------------------------------------------------------------------
    # Validate / consume
    # ------------------------------------------------------------------

    async def validate(self, token: str) -> TokenValidation:
        """Pure read. Never raises for an unusable token; returns a tagged result."""
        row, firm, error = await self._check(token)
        if error is not None:
            return TokenInvalid.of(error)
        return TokenValid(
            token=TokenOut.model_validate(row),
            firm=FirmSummary.model_validate(firm),
        )

    async def require_valid(self, token: str) -> tuple[OnboardingToken, Firm]:
        """Same checks as :meth:`validate`, raised as errors."""
        row, firm, error = await self._check(token)
        if error is TokenError.NOT_FOUND:
            raise NotFoundError("Token")
        if error is TokenError.USED:
            raise TokenUsedError(TOKEN_ERROR_MESSAGES[error])
        if error is TokenError.EXPIRED:
            raise ExpiredError(TOKEN_ERROR_MESSAGES[error])
        if error is TokenError.ORPHANED_FIRM:
            raise NotFoundError("Associated firm")
        return row, firm  # type: ignore[return-value]

    async def consume(
        self, token: str, actor_email: str, network: NetworkContext | None = None
    ) -> OnboardingToken:
        row, _ = await self.require_valid(token)
        now = self._clock()
        row.is_used = True
        row.used_at = now
        await self._tokens.save(row)

        await self._audit.record(
            AuditAction.TOKEN_USED,
            EntityType.TOKEN,
            row.id,
            actor_email,
            ActorType.FIRM,
            TokenUsedDetails(firm_id=row.firm_id, originally_created_at=row.created_at),
            network,
            timestamp=now,
        )
        logger.info("Token %s consumed", row.id)
        return row

    async def consume_all_for_firm_email(
        self, firm_email: str, network: NetworkContext | None = None
    ) -> int:
        """Catch-all used once onboarding has completed: retire every unused token."""
        firm = await self._firms.get_by_email(firm_email, for_update=True)
        if not firm:
            raise NotFoundError("Firm")

        now = self._clock()
        unused = await self._tokens.unused_for_firm(firm.id)
        for row in unused:
            row.is_used = True
            row.used_at = now
            await self._tokens.save(row)
            await self._audit.record(
                AuditAction.TOKEN_USED,
                EntityType.TOKEN,
                row.id,
                firm_email,
                ActorType.FIRM,
                TokenUsedDetails(firm_id=firm.id, verification_completed=True),
                network,
                timestamp=now,
            )
        if unused:
            logger.info("Marked %d tokens used for firm %s", len(unused), firm.id)
        return len(unused)

    # ------------------------------------------------------------------
    # Admin reads
    # ------------------------------------------------------------------

    async def list_tokens(self, *, unused_only: bool = False) -> list[OnboardingToken]:
        return await self._tokens.list_with_firm(unused_only=unused_only)

    async def active_tokens_for_firm(self, firm_id: str) -> list[OnboardingToken]:
        if not await self._firms.get_by_id(firm_id):
            raise NotFoundError("Firm", firm_id)
        return await self._tokens.active_for_firm(firm_id, self._clock())

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _lock_firm(self, firm_id: str) -> Firm:
        firm = await self._firms.get_by_id(firm_id, for_update=True)
        if not firm:
            raise NotFoundError("Firm", firm_id)
        return firm

    async def _check(
        self, token: str
    ) -> tuple[OnboardingToken | None, Firm | None, TokenError | None]:
        row = await self._tokens.get_by_token(token)
        if row is None:
            return None, None, TokenError.NOT_FOUND
        if row.is_used:
            return row, None, TokenError.USED
        if row.is_expired(self._clock()):
            return row, None, TokenError.EXPIRED
        firm = await self._firms.get_by_id(row.firm_id)
        if firm is None:
            return row, None, TokenError.ORPHANED_FIRM
        return row, firm, None

    async def _invalidate(
        self,
        row: OnboardingToken,
        firm: Firm,
        actor_email: str,
        reason: str,
        now: datetime,
        network: NetworkContext | None,
    ) -> None:
        row.is_used = True
        row.used_at = now
        await self._tokens.save(row)
        await self._audit.record(
            AuditAction.TOKEN_INVALIDATED,
            EntityType.TOKEN,
            row.id,
            actor_email,
            ActorType.ADMIN,
            TokenInvalidatedDetails(firm_id=firm.id, reason=reason),
            network,
            timestamp=now,
        )

    async def _insert_unique(self, firm: Firm, now: datetime) -> OnboardingToken:
        """Draw until a token string is free, checking and inserting per attempt.

        The insert runs in a SAVEPOINT; a unique-constraint rejection from a
        concurrent writer counts as a collision and is retried.
        """
        for _ in range(MAX_TOKEN_DRAWS):
            candidate = self._token_factory()
            if await self._tokens.token_exists(candidate):
                logger.warning("Token draw collided with an existing token; retrying")
                continue
            try:
                async with self._session.begin_nested():
                    return await self._tokens.create(
                        token=candidate,
                        firm_id=firm.id,
                        is_used=False,
                        expires_at=now + self._ttl,
                        created_at=now,
                    )
            except IntegrityError:
                logger.warning("Token insert lost a uniqueness race; retrying")
        raise AppException(
            "Could not allocate a unique onboarding token",
            status_code=500,
            code="TOKEN_SPACE_EXHAUSTED",
        )
