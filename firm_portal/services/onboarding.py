"""Onboarding orchestrator: ties Identity Service sign-up to token consumption and firm activation.

Sequence:
  1. ``inspect``: validate the token and show the firm's public identity.
  2. ``submit_password``: start the Identity Service sign-up for the firm email.
  3. ``verify_code`` / ``resend_code``: optional emailed-code stage.
  4. Once a stable identity reference exists: complete the firm in the
     registry FIRST, then consume the token.
  5. ``handle_account_finalized``: out-of-band reconciliation from the
     Identity Service webhook. Repeats of step 4 are tolerated here.

Failures in steps 2-3 never touch the token; it stays usable until it is
consumed or expires.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from firm_portal.core.exceptions import (
    AppException,
    NotFoundError,
    OnboardingAlreadyCompletedError,
    UnverifiedError,
)
from firm_portal.domain.firm import Firm
from firm_portal.domain.mixins import utcnow
from firm_portal.schemas.audit import NetworkContext
from firm_portal.schemas.onboarding import OnboardingStatus
from firm_portal.schemas.token import TokenValidation
from firm_portal.services.firms import FirmRegistry
from firm_portal.services.identity import IdentityService
from firm_portal.services.tokens import TokenEngine

logger = logging.getLogger(__name__)


class ReconciliationOutcome(str, enum.Enum):
    COMPLETED = "completed"
    ALREADY_COMPLETED = "already_completed"
    NOT_A_FIRM = "not_a_firm"


class OnboardingOrchestrator:
    def __init__(
        self,
        session: AsyncSession,
        identity: IdentityService,
        *,
        clock: Callable[[], datetime] = utcnow,
        tokens: TokenEngine | None = None,
    ):
        self._identity = identity
        self._firms = FirmRegistry(session, clock)
        self._tokens = tokens or TokenEngine(session, clock=clock)

    # ------------------------------------------------------------------
    # Interactive flow
    # ------------------------------------------------------------------

    async def inspect(self, token: str) -> TokenValidation:
        return await self._tokens.validate(token)

    async def submit_password(
        self, token: str, password: str, network: NetworkContext | None = None
    ) -> OnboardingStatus:
        _, firm = await self._tokens.require_valid(token)

        result = await self._identity.create_account(firm.email, password)
        if result.is_complete:
            await self._finish(firm, result.identity_ref, token, network)  # type: ignore[arg-type]
            return OnboardingStatus(
                status="complete",
                firm_id=firm.id,
                message="Firm onboarding completed successfully",
            )

        await self._identity.send_verification_code(result.attempt_id)
        logger.info("Firm %s sign-up awaiting email verification", firm.id)
        return OnboardingStatus(
            status="needs_verification",
            firm_id=firm.id,
            attempt_id=result.attempt_id,
            message="Verification code sent. Check your inbox.",
        )

    async def verify_code(
        self,
        token: str,
        attempt_id: str,
        code: str,
        network: NetworkContext | None = None,
    ) -> OnboardingStatus:
        _, firm = await self._tokens.require_valid(token)

        result = await self._identity.verify_code(attempt_id, code)
        if not result.is_complete:
            raise UnverifiedError()

        await self._finish(firm, result.identity_ref, token, network)  # type: ignore[arg-type]
        return OnboardingStatus(
            status="complete",
            firm_id=firm.id,
            message="Firm onboarding completed successfully",
        )

    async def resend_code(self, token: str, attempt_id: str) -> OnboardingStatus:
        _, firm = await self._tokens.require_valid(token)
        await self._identity.send_verification_code(attempt_id)
        return OnboardingStatus(
            status="needs_verification",
            firm_id=firm.id,
            attempt_id=attempt_id,
            message="Verification email sent! Please check your inbox.",
        )

    async def _finish(
        self,
        firm: Firm,
        identity_ref: str,
        token: str,
        network: NetworkContext | None,
    ) -> None:
        # Registry before token: never leave a consumed token on an inactive firm
        try:
            await self._firms.complete_onboarding(
                firm.email, identity_ref, source="interactive", network=network
            )
        except OnboardingAlreadyCompletedError:
            # Reconciliation beat us to the same account: same event, not a duplicate
            current = await self._firms.find_by_email(firm.email)
            if current is None or current.identity_ref != identity_ref:
                raise
            logger.info("Firm %s was already completed by reconciliation", firm.id)
        try:
            await self._tokens.consume(token, firm.email, network)
        except AppException as exc:
            logger.warning(
                "Token consumption failed after firm %s completed (%s); retiring all unused tokens",
                firm.id, exc.code,
            )
            await self._tokens.consume_all_for_firm_email(firm.email, network)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def handle_account_finalized(
        self, email: str, identity_ref: str
    ) -> ReconciliationOutcome:
        """Idempotent: safe to deliver any number of times for the same account."""
        try:
            await self._firms.complete_onboarding(email, identity_ref, source="reconciliation")
            outcome = ReconciliationOutcome.COMPLETED
        except OnboardingAlreadyCompletedError:
            outcome = ReconciliationOutcome.ALREADY_COMPLETED
        except NotFoundError:
            logger.info("Finalized account is not a firm user; ignoring")
            return ReconciliationOutcome.NOT_A_FIRM

        retired = await self._tokens.consume_all_for_firm_email(email)
        logger.info(
            "Reconciled finalized account (%s, %d tokens retired)", outcome.value, retired
        )
        return outcome
