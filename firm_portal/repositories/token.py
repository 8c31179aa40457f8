"""Onboarding token repository."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from firm_portal.domain.token import OnboardingToken
from firm_portal.repositories.base import BaseRepository


class TokenRepository(BaseRepository[OnboardingToken]):
    model = OnboardingToken

    async def get_by_token(self, token: str) -> OnboardingToken | None:
        result = await self._session.execute(
            select(OnboardingToken).where(OnboardingToken.token == token)
        )
        return result.scalars().first()

    async def token_exists(self, token: str) -> bool:
        result = await self._session.execute(
            select(OnboardingToken.id).where(OnboardingToken.token == token).limit(1)
        )
        return result.first() is not None

    async def unused_for_firm(self, firm_id: str) -> list[OnboardingToken]:
        """Unused tokens for a firm (expired ones included), newest first."""
        result = await self._session.execute(
            select(OnboardingToken)
            .where(OnboardingToken.firm_id == firm_id)
            .where(OnboardingToken.is_used.is_(False))
            .order_by(OnboardingToken.created_at.desc())
        )
        return list(result.scalars().all())

    async def active_for_firm(self, firm_id: str, now: datetime) -> list[OnboardingToken]:
        result = await self._session.execute(
            select(OnboardingToken)
            .where(OnboardingToken.firm_id == firm_id)
            .where(OnboardingToken.is_used.is_(False))
            .where(OnboardingToken.expires_at > now)
            .order_by(OnboardingToken.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_with_firm(self, *, unused_only: bool = False) -> list[OnboardingToken]:
        q = select(OnboardingToken).options(selectinload(OnboardingToken.firm))
        if unused_only:
            q = q.where(OnboardingToken.is_used.is_(False))
        result = await self._session.execute(q.order_by(OnboardingToken.created_at.desc()))
        return list(result.scalars().all())
