"""Onboarding request/response schemas."""

from __future__ import annotations

import re
from typing import Literal

from pydantic import Field, field_validator, model_validator

from firm_portal.schemas.common import CamelModel

PASSWORD_MIN_LENGTH = 8


class PasswordSetupRequest(CamelModel):
    password: str = Field(min_length=1, repr=False)
    confirm_password: str = Field(min_length=1, repr=False)

    @field_validator("password")
    @classmethod
    def _password_policy(cls, value: str) -> str:
        if len(value) < PASSWORD_MIN_LENGTH:
            raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
        if not re.search(r"[A-Z]", value):
            raise ValueError("Password must contain at least one uppercase letter")
        if not re.search(r"[a-z]", value):
            raise ValueError("Password must contain at least one lowercase letter")
        if not re.search(r"[0-9]", value):
            raise ValueError("Password must contain at least one number")
        return value

    @model_validator(mode="after")
    def _passwords_match(self) -> PasswordSetupRequest:
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class VerifyCodeRequest(CamelModel):
    attempt_id: str = Field(min_length=1)
    code: str = Field(min_length=1, max_length=32, repr=False)


class ResendCodeRequest(CamelModel):
    attempt_id: str = Field(min_length=1)


class OnboardingStatus(CamelModel):
    """Result of a password submission or verification attempt."""

    status: Literal["complete", "needs_verification"]
    firm_id: str | None = None
    attempt_id: str | None = None
    message: str
