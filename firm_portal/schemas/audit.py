"""Audit log schemas.

``details`` on an audit row is one of the known shapes below, keyed by action
kind. A plain dict is accepted for anything not modelled yet.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from firm_portal.schemas.common import CamelModel


class AuditAction:
    FIRM_CREATED = "firm_created"
    FIRM_UPDATED = "firm_updated"
    FIRM_ONBOARDING_COMPLETED = "firm_onboarding_completed"
    TOKEN_GENERATED = "token_generated"
    TOKEN_USED = "token_used"
    TOKEN_INVALIDATED = "token_invalidated"
    ADMIN_LOGIN = "admin_login"


class EntityType:
    FIRM = "firm"
    TOKEN = "token"
    ADMIN_USER = "admin_user"


class ActorType:
    ADMIN = "admin"
    FIRM = "firm"
    CLIENT = "client"
    SYSTEM = "system"


class NetworkContext(BaseModel):
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


# ---------------------------------------------------------------------------
# Detail shapes
# ---------------------------------------------------------------------------

class AuditDetails(BaseModel):
    """Base shape: optional before/after snapshots plus action metadata."""

    old_value: Optional[dict[str, Any]] = None
    new_value: Optional[dict[str, Any]] = None

    def metadata(self) -> Optional[dict[str, Any]]:
        return None


class FirmCreatedDetails(AuditDetails):
    pass


class FirmUpdatedDetails(AuditDetails):
    changed_fields: list[str] = Field(default_factory=list)

    def metadata(self) -> Optional[dict[str, Any]]:
        return {"changedFields": self.changed_fields}


class FirmOnboardingCompletedDetails(AuditDetails):
    identity_ref: str
    source: str  # "interactive" | "reconciliation"

    def metadata(self) -> Optional[dict[str, Any]]:
        return {"identityRef": self.identity_ref, "source": self.source}


class TokenGeneratedDetails(AuditDetails):
    firm_id: str
    firm_name: str
    firm_email: str
    expires_at: datetime
    force_generated: bool = False
    invalidated_tokens: int = 0

    def metadata(self) -> Optional[dict[str, Any]]:
        data: dict[str, Any] = {
            "firmId": self.firm_id,
            "firmName": self.firm_name,
            "firmEmail": self.firm_email,
            "expiresAt": self.expires_at.isoformat(),
        }
        if self.force_generated:
            data["forceGenerated"] = True
            data["invalidatedTokens"] = self.invalidated_tokens
        return data


class TokenUsedDetails(AuditDetails):
    firm_id: str
    originally_created_at: Optional[datetime] = None
    verification_completed: bool = False

    def metadata(self) -> Optional[dict[str, Any]]:
        data: dict[str, Any] = {"firmId": self.firm_id}
        if self.originally_created_at is not None:
            data["originallyCreatedAt"] = self.originally_created_at.isoformat()
        if self.verification_completed:
            data["verificationCompleted"] = True
        return data


class TokenInvalidatedDetails(AuditDetails):
    firm_id: str
    reason: str  # "expired" | "superseded"

    def metadata(self) -> Optional[dict[str, Any]]:
        return {"firmId": self.firm_id, "reason": self.reason}


class AdminLoginDetails(AuditDetails):
    identity_ref: Optional[str] = None
    first_login: bool = False

    def metadata(self) -> Optional[dict[str, Any]]:
        return {"identityRef": self.identity_ref, "firstLogin": self.first_login}


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class AuditLogOut(CamelModel):
    id: str
    action: str
    entity_type: str
    entity_id: str
    actor: str
    actor_type: str
    old_value: Any = None
    new_value: Any = None
    extra: Any = Field(default=None, serialization_alias="metadata")
    ip_address: str | None = None
    user_agent: str | None = None
    timestamp: datetime
