"""SQLAlchemy ORM model for single-use firm onboarding tokens."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from firm_portal.db.base import Base
from firm_portal.domain.mixins import as_utc, utcnow


class OnboardingToken(Base):
    # Rows are never deleted; is_used only ever flips False -> True
    __tablename__ = "tokens"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)

    firm_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("firms.id"), nullable=False, index=True
    )

    # Expiry and usage
    is_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    firm: Mapped[Optional["Firm"]] = relationship(back_populates="tokens", lazy="raise")

    def is_expired(self, now: datetime) -> bool:
        return as_utc(self.expires_at) <= now

    def is_valid(self, now: datetime) -> bool:
        return not self.is_used and not self.is_expired(now)
