"""Access classification schemas."""

from enum import Enum

from firm_portal.schemas.common import CamelModel


class AccessRole(str, Enum):
    ADMIN = "admin"
    FIRM = "firm"
    UNRECOGNIZED = "unrecognized"


LANDING_PATHS: dict[AccessRole, str] = {
    AccessRole.ADMIN: "/admin/dashboard",
    AccessRole.FIRM: "/firm/dashboard",
    AccessRole.UNRECOGNIZED: "/access-denied",
}


class AccessOut(CamelModel):
    email: str
    role: AccessRole
    redirect_to: str


class AdminCheckOut(CamelModel):
    is_admin: bool
    email: str | None = None


class AdminSessionRequest(CamelModel):
    identity_ref: str | None = None
