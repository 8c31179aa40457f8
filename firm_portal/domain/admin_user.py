"""SQLAlchemy ORM model for admin user bookkeeping.

Access is decided by the configured admin email, not by this table.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from firm_portal.db.base import Base
from firm_portal.domain.mixins import TimestampMixin


class AdminUser(Base, TimestampMixin):
    __tablename__ = "admin_users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    identity_ref: Mapped[Optional[str]] = mapped_column(String(255), index=True, nullable=True)
