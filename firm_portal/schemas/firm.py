"""Firm Pydantic schemas (request DTOs and response models)."""


from datetime import datetime

from pydantic import Field, field_validator

from firm_portal.schemas.common import CamelModel

class FirmContact(CamelModel):
    contact_person: str | None = None
    phone: str | None = None
    address: str | None = None

class FirmCreate(FirmContact):
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)

class FirmUpdate(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, min_length=3, max_length=255)
    contact_person: str | None = None
    phone: str | None = None
    address: str | None = None

    @field_validator("name", "email")
    @classmethod
    def _required_fields_not_null(cls, value: str | None, info) -> str | None:
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value

class FirmSummary(CamelModel):
    id: str
    name: str
    email: str

class FirmOut(CamelModel):
    id: str
    name: str
    email: str
    identity_ref: str | None = None
    has_completed_onboarding: bool
    contact_person: str | None = None
    phone: str | None = None
    address: str | None = None
    created_at: datetime
    updated_at: datetime
