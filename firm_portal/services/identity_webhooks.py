"""Identity Service webhook verification and parsing.

Clerk delivers webhooks through Svix. The signature is in the 'svix-signature'
header: space-separated ``v1,<base64 hmac>`` entries over
``<svix-id>.<svix-timestamp>.<body>``.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from typing import Any, Mapping

logger = logging.getLogger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300

ACCOUNT_FINALIZED_EVENT = "user.created"


def _secret_bytes(secret: str) -> bytes | None:
    if not secret.startswith("whsec_"):
        return secret.encode("utf-8")
    raw = secret[len("whsec_"):]
    try:
        return base64.b64decode(raw + "=" * (-len(raw) % 4))
    except (binascii.Error, ValueError):
        logger.warning("Invalid webhook signing secret: malformed whsec_ encoding")
        return None


def sign_payload(secret: str, msg_id: str, timestamp: str, body: bytes) -> str:
    """Return the ``v1,<sig>`` value Svix would send for this payload."""
    key = _secret_bytes(secret) or b""
    signed = f"{msg_id}.{timestamp}.".encode("utf-8") + body
    digest = hmac.new(key, signed, hashlib.sha256).digest()
    return "v1," + base64.b64encode(digest).decode("ascii")


def verify_svix_signature(
    body: bytes,
    headers: Mapping[str, str],
    secret: str,
    *,
    now: float | None = None,
) -> bool:
    msg_id = headers.get("svix-id", "")
    timestamp = headers.get("svix-timestamp", "")
    signature_header = headers.get("svix-signature", "")
    if not msg_id or not timestamp or not signature_header:
        return False

    # Reject stale or malformed timestamps to prevent replay attacks.
    try:
        sent_at = int(timestamp)
    except (TypeError, ValueError):
        return False
    current = int(now if now is not None else time.time())
    if abs(current - sent_at) > SIGNATURE_TOLERANCE_SECONDS:
        return False

    if _secret_bytes(secret) is None:
        return False
    expected = sign_payload(secret, msg_id, timestamp, body).split(",", 1)[1]

    for candidate in signature_header.split():
        version, _, sig = candidate.partition(",")
        if version == "v1" and hmac.compare_digest(sig, expected):
            return True
    return False


@dataclass(frozen=True)
class FinalizedAccount:
    identity_ref: str
    email: str


def parse_finalized_account(event: dict[str, Any]) -> FinalizedAccount | None:
    """Extract (identity ref, primary email) from a ``user.created`` event."""
    if event.get("type") != ACCOUNT_FINALIZED_EVENT:
        return None
    data = event.get("data")
    if not isinstance(data, dict):
        return None
    user_id = data.get("id")
    primary_id = data.get("primary_email_address_id")
    addresses = data.get("email_addresses")
    if not isinstance(addresses, list):
        return None
    for address in addresses:
        if not isinstance(address, dict):
            continue
        email = address.get("email_address")
        if address.get("id") == primary_id and isinstance(email, str) and email:
            if not isinstance(user_id, str) or not user_id:
                return None
            return FinalizedAccount(identity_ref=user_id, email=email)
    return None
