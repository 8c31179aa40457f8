"""
Test configuration and fixtures.

Provides:
- In-memory SQLite engine per test (schema created from the ORM metadata)
- A controllable clock for expiry scenarios
- A fake Identity Service standing in for Clerk
- Session JWT minting for authenticated requests
- HTTPX AsyncClient over the ASGI app with dependency overrides
"""
import base64
import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

# Configure settings before anything from firm_portal is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["APP_ENV"] = "test"
os.environ["ADMIN_EMAIL"] = "admin@firm-portal.test"
os.environ["SESSION_JWT_KEY"] = "test-session-signing-key-0123456789abcdef"
os.environ["SESSION_JWT_ALGORITHMS"] = '["HS256"]'
os.environ["ONBOARDING_BASE_URL"] = "https://portal.test"
os.environ["CLERK_WEBHOOK_SECRET"] = "whsec_" + base64.b64encode(b"test-webhook-signing-key").decode()

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from firm_portal.core.config import settings
from firm_portal.db.base import Base, enable_sqlite_savepoints, get_db
from firm_portal.main import app
from firm_portal.services.identity import SignUpResult, get_identity_service

ADMIN_EMAIL = "admin@firm-portal.test"


# =============================================================================
# Clock
# =============================================================================

class FakeClock:
    """Callable clock; tests move it forward explicitly."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# =============================================================================
# Identity Service fake
# =============================================================================

class FakeIdentityService:
    """Records calls; completes sign-ups immediately unless told to require a code."""

    def __init__(self):
        self.require_verification = False
        self.valid_code = "424242"
        self.create_error: Exception | None = None
        self.on_create = None
        self.created: list[str] = []
        self.codes_sent: list[str] = []
        self._count = 0

    async def create_account(self, email: str, password: str) -> SignUpResult:
        if self.create_error is not None:
            raise self.create_error
        if self.on_create is not None:
            self.on_create()
        self._count += 1
        attempt_id = f"sua_{self._count}"
        self.created.append(email)
        if self.require_verification:
            return SignUpResult("needs_verification", attempt_id)
        return SignUpResult("complete", attempt_id, f"user_{self._count}")

    async def send_verification_code(self, attempt_id: str) -> None:
        self.codes_sent.append(attempt_id)

    async def verify_code(self, attempt_id: str, code: str) -> SignUpResult:
        if code != self.valid_code:
            return SignUpResult("needs_verification", attempt_id)
        return SignUpResult("complete", attempt_id, f"user_{attempt_id}")


@pytest.fixture
def identity() -> FakeIdentityService:
    return FakeIdentityService()


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def engine():
    """One in-memory database per test, shared by every session via StaticPool."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(test_engine)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def db_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(db_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for service-level tests. Do not combine with ``client``."""
    async with db_factory() as s:
        yield s


# =============================================================================
# Auth Fixtures
# =============================================================================

def mint_session_token(email: str, sub: str = "user_test", expires_in: int = 3600) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "email": email,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
    }
    return jwt.encode(payload, settings.session_jwt_key, algorithm="HS256")


def auth_headers(email: str, sub: str = "user_test") -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_session_token(email, sub)}"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return auth_headers(ADMIN_EMAIL, sub="user_admin")


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def client(db_factory, identity) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient over the app; each request gets its own committed transaction."""

    async def override_get_db():
        async with db_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_service] = lambda: identity

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
