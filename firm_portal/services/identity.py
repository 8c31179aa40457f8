"""Identity Service boundary.

The Identity Service (Clerk) owns credentials, password hashing and sessions.
The orchestrator only sees :class:`IdentityService`; :class:`ClerkIdentityService`
drives Clerk's Frontend API sign-up flow over httpx.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal, Protocol

import httpx

from firm_portal.core.config import settings
from firm_portal.core.exceptions import ConflictError, IdentityServiceError, ValidationError

logger = logging.getLogger(__name__)

SignUpStatus = Literal["complete", "needs_verification"]


@dataclass(frozen=True)
class SignUpResult:
    status: SignUpStatus
    attempt_id: str
    identity_ref: str | None = None

    @property
    def is_complete(self) -> bool:
        return self.status == "complete" and bool(self.identity_ref)


class IdentityService(Protocol):
    async def create_account(self, email: str, password: str) -> SignUpResult:
        """Start a sign-up. May finish immediately or need an emailed code."""

    async def send_verification_code(self, attempt_id: str) -> None:
        """Email (or re-email) a one-time code for a pending sign-up."""

    async def verify_code(self, attempt_id: str, code: str) -> SignUpResult:
        """Attempt the emailed code against a pending sign-up."""


# Clerk error codes that map onto our own taxonomy
_ACCOUNT_EXISTS_CODES = {"form_identifier_exists", "identifier_already_exists", "email_address_taken"}
_PASSWORD_CODES = {"form_password_pwned", "form_password_length_too_short", "form_password_validation_failed"}
_CODE_CODES = {"form_code_incorrect", "verification_expired", "verification_failed"}


def _status_of(sign_up: dict[str, Any]) -> SignUpResult:
    status = sign_up.get("status")
    attempt_id = sign_up.get("id", "")
    if status == "complete":
        return SignUpResult("complete", attempt_id, sign_up.get("created_user_id"))
    if status == "missing_requirements":
        return SignUpResult("needs_verification", attempt_id)
    raise IdentityServiceError(f"Account creation incomplete. Status: {status}")


class ClerkIdentityService:
    """Clerk Frontend API client for the email + password sign-up flow."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = (base_url or settings.clerk_frontend_api_url).rstrip("/")
        self._timeout = timeout or settings.identity_timeout
        self._transport = transport

    async def create_account(self, email: str, password: str) -> SignUpResult:
        sign_up = await self._post(
            "/v1/client/sign_ups",
            {"email_address": email, "password": password},
        )
        return _status_of(sign_up)

    async def send_verification_code(self, attempt_id: str) -> None:
        await self._post(
            f"/v1/client/sign_ups/{attempt_id}/prepare_verification",
            {"strategy": "email_code"},
        )

    async def verify_code(self, attempt_id: str, code: str) -> SignUpResult:
        sign_up = await self._post(
            f"/v1/client/sign_ups/{attempt_id}/attempt_verification",
            {"strategy": "email_code", "code": code},
        )
        return _status_of(sign_up)

    async def _post(self, path: str, form: dict[str, str]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(path, data=form)
        except httpx.HTTPError as exc:
            logger.error("Identity Service request to %s failed: %s", path, exc)
            raise IdentityServiceError("Identity Service is unavailable") from exc

        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            logger.error(
                "Identity Service returned a non-JSON body for %s (%s)", path, response.status_code
            )
            raise IdentityServiceError(f"Identity Service error ({response.status_code})")
        if response.is_success:
            sign_up = payload.get("response", payload)
            if not isinstance(sign_up, dict):
                raise IdentityServiceError(f"Identity Service error ({response.status_code})")
            return sign_up

        codes = {err.get("code") for err in payload.get("errors", []) if isinstance(err, dict)}
        logger.warning("Identity Service rejected %s (%s): %s", path, response.status_code, codes)
        if codes & _ACCOUNT_EXISTS_CODES:
            raise ConflictError("An account with this email already exists. Please contact support.")
        if codes & _PASSWORD_CODES:
            raise ValidationError("Password does not meet requirements.")
        if codes & _CODE_CODES:
            raise ValidationError("Invalid verification code. Please try again.")
        raise IdentityServiceError(f"Identity Service error ({response.status_code})")


def get_identity_service() -> IdentityService:
    """FastAPI dependency; tests override it with a fake."""
    return ClerkIdentityService()
