"""Application configuration loaded from environment variables.

Settings for the database, session credentials, sign-in emails, and rate
limiting. Uses pydantic-settings for validation and .env file support.

Runtime secrets (DATABASE_URL, AUTH_SECRET, RESEND_API_KEY) default to empty
so that the module imports cleanly in tests and tooling. The application
lifespan calls require_runtime_secrets() and refuses to start without them.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32

# Driver-less URL schemes rewritten to the asyncpg driver
_ASYNC_SCHEME_REWRITES = {
    "postgres://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = ""

    # Public base URL of this service. Magic links point here so the
    # verify endpoint can set the session cookie before redirecting.
    api_url: str = "http://localhost:8000"

    # Frontend URL (redirect target after a magic link click)
    app_url: str = "http://localhost:5173"

    # CORS
    # CRITICAL: Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:5173"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Session credentials
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "practice-perfect"
    auth_audience: str = "practice-perfect"
    auth_cookie_name: str = "auth_token"
    # None = Secure only in production
    auth_cookie_secure: bool | None = None
    auth_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    auth_cookie_domain: str = ""
    session_ttl_days: int = 30

    # Sign-in artifacts (magic link token + one-time code)
    sign_in_ttl_minutes: int = 15
    sign_in_code_length: int = 6

    # Email (Resend)
    email_from: str = "onboarding@resend.dev"
    resend_api_key: SecretStr = SecretStr("")

    # Rate limiting
    # Format: "count/period" (e.g., "10/minute", "5/15minutes")
    rate_limit_enabled: bool = True
    rate_limit_storage_uri: str = "memory://"
    rate_limit_login_ip: str = "20/hour"
    rate_limit_verify_ip: str = "10/minute"
    rate_limit_issue_per_email: str = "5/15minutes"
    rate_limit_verify_per_email: str = "10/15minutes"

    # Expired artifact sweep, 0 disables the background task
    artifact_sweep_interval_seconds: int = 3600

    @property
    def async_database_url(self) -> str:
        """Database URL with an async driver for SQLAlchemy."""
        for prefix, replacement in _ASYNC_SCHEME_REWRITES.items():
            if self.database_url.startswith(prefix):
                return replacement + self.database_url[len(prefix) :]
        return self.database_url

    @property
    def cookie_secure(self) -> bool:
        """Whether the session cookie carries the Secure flag."""
        if self.auth_cookie_secure is None:
            return self.environment == "production"
        return self.auth_cookie_secure

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate cookie, CORS, and production security requirements.

        Checks:
        - SameSite=None requires the Secure flag (browser requirement)
        - CORS must not use wildcard origin (incompatible with credentials)
        - Sign-in code length must stay within 4-10 digits
        - Production: AUTH_SECRET, when set, must be >= 32 chars
        - Production: the session cookie must not be sent over plain HTTP
        """
        if self.auth_cookie_samesite == "none" and not self.cookie_secure:
            msg = (
                "AUTH_COOKIE_SECURE must be true when AUTH_COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "The session cookie requires credentialed CORS, which is "
                "incompatible with wildcard origins."
            )
            raise ValueError(msg)

        if not 4 <= self.sign_in_code_length <= 10:
            msg = (
                "SIGN_IN_CODE_LENGTH must be between 4 and 10. "
                f"Got: {self.sign_in_code_length}"
            )
            raise ValueError(msg)

        if self.environment == "production":
            secret_value = self.auth_secret.get_secret_value()
            if secret_value and len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    "characters for adequate security."
                )
                raise ValueError(msg)
            if not self.cookie_secure:
                msg = "AUTH_COOKIE_SECURE cannot be false in production."
                raise ValueError(msg)

        return self

    def require_runtime_secrets(self) -> None:
        """Fail fast when an external collaborator is not configured.

        Called once at application startup.

        Raises:
            RuntimeError: Naming every missing environment variable.
        """
        missing = []
        if not self.database_url:
            missing.append("DATABASE_URL")
        if not self.auth_secret.get_secret_value():
            missing.append("AUTH_SECRET")
        if not self.resend_api_key.get_secret_value():
            missing.append("RESEND_API_KEY")
        if missing:
            msg = f"Missing required configuration: {', '.join(missing)}"
            raise RuntimeError(msg)


settings = Settings()
