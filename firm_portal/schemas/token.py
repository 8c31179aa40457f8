"""Onboarding token schemas, including the tagged validation result."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Union

from firm_portal.schemas.common import CamelModel
from firm_portal.schemas.firm import FirmSummary


class TokenError(str, Enum):
    NOT_FOUND = "not_found"
    USED = "used"
    EXPIRED = "expired"
    ORPHANED_FIRM = "orphaned_firm"


# Firm-facing copy; each failure has its own recovery path
TOKEN_ERROR_MESSAGES: dict[TokenError, str] = {
    TokenError.NOT_FOUND: "Token not found",
    TokenError.USED: "Token has already been used",
    TokenError.EXPIRED: "Token has expired",
    TokenError.ORPHANED_FIRM: "Associated firm not found",
}


class TokenOut(CamelModel):
    id: str
    token: str
    firm_id: str
    is_used: bool
    expires_at: datetime
    created_at: datetime
    used_at: datetime | None = None


class TokenWithFirmOut(TokenOut):
    firm: FirmSummary | None = None


class IssuedToken(CamelModel):
    """Returned by generate / force-generate."""

    token_id: str
    token: str
    expires_at: datetime
    link: str
    invalidated_tokens: int = 0
    message: str


class TokenInvalid(CamelModel):
    valid: Literal[False] = False
    reason: TokenError
    error: str

    @classmethod
    def of(cls, reason: TokenError) -> TokenInvalid:
        return cls(reason=reason, error=TOKEN_ERROR_MESSAGES[reason])


class TokenValid(CamelModel):
    valid: Literal[True] = True
    token: TokenOut
    firm: FirmSummary


TokenValidation = Union[TokenValid, TokenInvalid]
