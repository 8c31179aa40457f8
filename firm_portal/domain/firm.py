"""SQLAlchemy ORM model for Firms (the tenants).

Pattern shared by all domain models:
  - Inherit Base, TimestampMixin where rows are mutable
  - UUID primary key stored as a 36-char string
  - Secondary indexes for every lookup the services perform
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from firm_portal.db.base import Base
from firm_portal.domain.mixins import TimestampMixin


class Firm(Base, TimestampMixin):
    __tablename__ = "firms"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Case-sensitive as stored; one firm per email
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    # Set only once onboarding completes
    identity_ref: Mapped[Optional[str]] = mapped_column(String(255), index=True, nullable=True)
    has_completed_onboarding: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, index=True
    )

    contact_person: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    tokens: Mapped[List["OnboardingToken"]] = relationship(
        back_populates="firm", lazy="raise"
    )

    def snapshot(self) -> dict:
        """JSON-safe copy of the editable and lifecycle fields, for audit rows."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "contactPerson": self.contact_person,
            "phone": self.phone,
            "address": self.address,
            "identityRef": self.identity_ref,
            "hasCompletedOnboarding": self.has_completed_onboarding,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
