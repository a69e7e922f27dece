"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Proxy/Load Balancer Settings
    # Set to True when running behind nginx/Cloudflare to trust X-Forwarded-For
    TRUST_PROXY_HEADERS: bool = False

    # Database
    DATABASE_URL: str

    # Identity provider (phone OTP). Access tokens are HS256 JWTs.
    IDENTITY_JWT_SECRET: str = "change-this-in-production"
    IDENTITY_JWT_AUDIENCE: str = "authenticated"

    # Accept the literal "demo_token" credential (never enable in production)
    DEMO_AUTH_ENABLED: bool = False

    # Credential lifetimes
    CITIZEN_SESSION_DAYS: int = 30
    LANGUAGE_COOKIE_DAYS: int = 365
    ADMIN_SESSION_HOURS: int = 24

    # Family registry (identity-document profile lookup)
    FAMILY_REGISTRY_URL: str = ""
    FAMILY_REGISTRY_API_KEY: str = ""
    FAMILY_REGISTRY_TIMEOUT_SECONDS: float = 10.0

    # Let onboarding proceed when the session consent row cannot be written
    CONSENT_FAIL_OPEN: bool = False

    # Submission tracking numbers: <prefix><YYYY><MM><5 digits>
    SUBMISSION_ID_PREFIX: str = "EM"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    # Frontend (for safe redirects)
    FRONTEND_URL: str = "http://localhost:3000"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_AUTH: int = 5  # Login / registration attempts
    RATE_LIMIT_API: int = 60  # General API

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV != "dev"


settings = Settings()
