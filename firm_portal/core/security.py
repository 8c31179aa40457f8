"""Session JWT verification for principals authenticated by the Identity Service."""

from __future__ import annotations

from dataclasses import dataclass

import jwt

from firm_portal.core.config import settings
from firm_portal.core.exceptions import UnauthorizedError


@dataclass(frozen=True)
class Principal:
    """An authenticated caller: the identity ref (``sub``) and verified email."""

    identity_ref: str
    email: str


def decode_session_token(token: str) -> Principal:
    """Verify the Identity Service session JWT and pull out the principal.

    Raises:
        UnauthorizedError: missing key, bad signature, expired, or no email claim
    """
    if not settings.session_jwt_key:
        raise UnauthorizedError("Session verification is not configured")
    try:
        claims = jwt.decode(
            token,
            settings.session_jwt_key,
            algorithms=settings.session_jwt_algorithms,
            options={"require": ["sub", "exp"]},
        )
    except jwt.InvalidTokenError as exc:
        raise UnauthorizedError("Invalid or expired session") from exc

    email = claims.get(settings.session_email_claim)
    if not email:
        raise UnauthorizedError("Session carries no verified email")
    return Principal(identity_ref=claims["sub"], email=email)
