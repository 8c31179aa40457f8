
from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application configuration loaded from environment variables / .env file."""

    app_name: str = "Firm Portal API"
    app_env: str = "development"
    app_port: int = 8000
    frontend_url: str = "http://localhost:3000"

    # Database (postgresql+asyncpg:// with the `postgres` extra, or sqlite+aiosqlite:// for local dev)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./firm_portal_dev.db",
        alias="DATABASE_URL",
    )

    # Single administrator identity. Every admin check reads this value.
    admin_email: str = Field(default="admin@example.com", alias="ADMIN_EMAIL")

    # Onboarding tokens
    token_ttl_hours: int = Field(default=24, alias="TOKEN_TTL_HOURS")
    onboarding_base_url: str = Field(
        default="http://localhost:3000", alias="ONBOARDING_BASE_URL",
    )  # links look like <base>/firm-signup?token=<token>

    # Identity Service (Clerk)
    clerk_frontend_api_url: str = Field(
        default="https://clerk.example.com", alias="CLERK_FRONTEND_API_URL",
    )
    clerk_publishable_key: str | None = Field(default=None, alias="CLERK_PUBLISHABLE_KEY")
    clerk_webhook_secret: str | None = Field(default=None, alias="CLERK_WEBHOOK_SECRET")
    identity_timeout: int = Field(default=15, alias="IDENTITY_TIMEOUT")

    # Session JWTs issued by the Identity Service
    session_jwt_key: str | None = Field(default=None, alias="SESSION_JWT_KEY")
    session_jwt_algorithms: list[str] = Field(
        default=["RS256"], alias="SESSION_JWT_ALGORITHMS",
    )
    session_email_claim: str = Field(default="email", alias="SESSION_EMAIL_CLAIM")

    # Only trust X-Forwarded-For behind a reverse proxy
    trust_proxy_headers: bool = Field(default=False, alias="TRUST_PROXY_HEADERS")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
    }

    @property
    def token_ttl_seconds(self) -> int:
        return self.token_ttl_hours * 60 * 60

settings = Settings()
