"""Application configuration loaded from environment variables.

Settings for database, cache, token lifetimes, cookies, one-time codes and
email. Uses pydantic-settings for validation and .env file support.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "remaster_dev_password"  # nosec B105

# Minimum length for token signing secrets in production (256 bits = 32 bytes)
_MIN_TOKEN_SECRET_LENGTH = 32

# Bounds for one-time code length
_MIN_CODE_LENGTH = 4
_MAX_CODE_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "remaster"
    database_user: str = "remaster_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # One-time code cache
    # "memory" keeps codes in-process (single worker, local development only)
    redis_url: str = "redis://localhost:6379/0"
    code_store_backend: Literal["redis", "memory"] = "redis"

    # API
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8080

    # CORS (Security)
    # CRITICAL: Never set to ["*"]; the refresh cookie needs allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    log_json: bool = False

    # Token signing
    # Access and refresh tokens use separate secrets so that leaking one
    # signing key cannot be used to forge the other kind of token.
    access_token_secret: SecretStr = SecretStr("")
    refresh_token_secret: SecretStr = SecretStr("")
    access_token_ttl_minutes: int = 15
    refresh_token_ttl_days: int = 7
    auth_issuer: str = "remaster"

    # Refresh cookie
    refresh_cookie_name: str = "qid"
    refresh_cookie_path: str = "/refresh_token"
    cookie_secure: bool = True
    cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    cookie_domain: str = ""

    # One-time codes (email verification, password reset)
    one_time_code_ttl_seconds: int = 60 * 60
    one_time_code_length: int = 6
    one_time_code_charset: Literal["numeric", "alphanumeric"] = "numeric"

    # Passwords
    bcrypt_rounds: int = 12
    revoke_sessions_on_password_change: bool = False

    # Email
    email_from: str = "noreply@remaster.app"
    email_subject_prefix: str = "REMASTER"
    resend_api_key: SecretStr = SecretStr("")

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @model_validator(mode="after")
    def check_security(self) -> "Settings":
        """Validate security and sanity requirements.

        Checks (all environments):
        - SameSite=None requires the Secure flag
        - CORS must not use a wildcard origin
        - Token and code TTLs must be positive
        - One-time code length must be within bounds
        - Access and refresh secrets must differ when both are set

        Checks (production):
        - Database password must not be the default
        - Both token secrets must be set and >= 32 chars
        """
        if self.cookie_samesite == "none" and not self.cookie_secure:
            msg = (
                "COOKIE_SECURE must be true when COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "The refresh cookie requires credentials, which are "
                "incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        for name in (
            "access_token_ttl_minutes",
            "refresh_token_ttl_days",
            "one_time_code_ttl_seconds",
        ):
            if getattr(self, name) <= 0:
                msg = f"{name.upper()} must be positive. Got: {getattr(self, name)}"
                raise ValueError(msg)

        if not _MIN_CODE_LENGTH <= self.one_time_code_length <= _MAX_CODE_LENGTH:
            msg = (
                f"ONE_TIME_CODE_LENGTH must be between {_MIN_CODE_LENGTH} "
                f"and {_MAX_CODE_LENGTH}. Got: {self.one_time_code_length}"
            )
            raise ValueError(msg)

        access_secret = self.access_token_secret.get_secret_value()
        refresh_secret = self.refresh_token_secret.get_secret_value()
        if access_secret and access_secret == refresh_secret:
            msg = "ACCESS_TOKEN_SECRET and REFRESH_TOKEN_SECRET must be different."
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            for name, value in (
                ("ACCESS_TOKEN_SECRET", access_secret),
                ("REFRESH_TOKEN_SECRET", refresh_secret),
            ):
                if len(value) < _MIN_TOKEN_SECRET_LENGTH:
                    msg = (
                        f"{name} must be set to at least {_MIN_TOKEN_SECRET_LENGTH} "
                        'characters in production. Generate with: python -c "import '
                        'secrets; print(secrets.token_hex(32))"'
                    )
                    raise ValueError(msg)

        return self


settings = Settings()
