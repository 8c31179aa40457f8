"""Domain package: all ORM models are imported here so Alembic autogenerate detects them.

Folder intent:
  firm.py       : Firm tenants and their onboarding state
  token.py      : Single-use onboarding tokens (never deleted)
  audit.py      : Immutable audit log (never updated or deleted)
  admin_user.py : Admin login bookkeeping
  mixins.py     : Shared TimestampMixin and UTC helpers
"""

from firm_portal.domain.admin_user import AdminUser
from firm_portal.domain.audit import AuditLog
from firm_portal.domain.firm import Firm
from firm_portal.domain.token import OnboardingToken

__all__ = [
    "AdminUser",
    "AuditLog",
    "Firm",
    "OnboardingToken",
]
