"""Tests for application configuration.

Tests cover defaults, env var loading, and security validation.
"""

import pytest
from pydantic import ValidationError

from remaster_auth.core.config import _INSECURE_DEFAULT_PASSWORD, Settings

# Reusable test constants
_SECURE_DB_PASSWORD = "my-secure-production-password-123!"
_ACCESS_SECRET = "a" * 64
_REFRESH_SECRET = "b" * 64
_PRODUCTION = "production"


def _production(**overrides) -> Settings:
    values = {
        "environment": _PRODUCTION,
        "database_password": _SECURE_DB_PASSWORD,
        "access_token_secret": _ACCESS_SECRET,
        "refresh_token_secret": _REFRESH_SECRET,
    }
    values.update(overrides)
    return Settings(**values)


class TestProductionSecurityValidation:
    """Tests for production security requirements."""

    def test_allows_default_password_in_development(self):
        """Default password is allowed in development environment."""
        s = Settings(
            environment="development",
            database_password=_INSECURE_DEFAULT_PASSWORD,
        )
        assert s.database_password == _INSECURE_DEFAULT_PASSWORD

    def test_rejects_default_password_in_production(self):
        """Default password is rejected in production environment."""
        with pytest.raises(ValidationError) as exc_info:
            _production(database_password=_INSECURE_DEFAULT_PASSWORD)

        errors = exc_info.value.errors()
        assert len(errors) == 1
        assert "Cannot use default database password in production" in str(
            errors[0]["msg"]
        )

    def test_accepts_complete_production_config(self):
        """Custom password and long distinct secrets pass."""
        s = _production()
        assert s.environment == _PRODUCTION

    @pytest.mark.parametrize("field", ["access_token_secret", "refresh_token_secret"])
    def test_rejects_short_secret_in_production(self, field):
        """Each signing secret must be at least 32 chars in production."""
        with pytest.raises(ValidationError, match=field.upper()):
            _production(**{field: "short"})

    def test_empty_secrets_allowed_in_development(self):
        """Local development runs without signing secrets configured."""
        s = Settings(environment="development")
        assert s.access_token_secret.get_secret_value() == ""


class TestGeneralValidation:
    """Checks that apply in every environment."""

    def test_rejects_identical_secrets(self):
        """Access and refresh secrets must differ."""
        with pytest.raises(ValidationError, match="must be different"):
            Settings(access_token_secret="same", refresh_token_secret="same")

    def test_rejects_wildcard_origin(self):
        """CORS wildcard is incompatible with credentialed cookies."""
        with pytest.raises(ValidationError, match="wildcard"):
            Settings(allowed_origins=["*"])

    def test_rejects_samesite_none_without_secure(self):
        """SameSite=None requires the Secure flag."""
        with pytest.raises(ValidationError, match="COOKIE_SECURE"):
            Settings(cookie_samesite="none", cookie_secure=False)

    @pytest.mark.parametrize(
        "field",
        [
            "access_token_ttl_minutes",
            "refresh_token_ttl_days",
            "one_time_code_ttl_seconds",
        ],
    )
    def test_rejects_non_positive_ttl(self, field):
        """Lifetimes must be positive."""
        with pytest.raises(ValidationError, match=field.upper()):
            Settings(**{field: 0})

    @pytest.mark.parametrize("length", [3, 33])
    def test_rejects_code_length_out_of_bounds(self, length):
        """One-time code length must stay within 4..32."""
        with pytest.raises(ValidationError, match="ONE_TIME_CODE_LENGTH"):
            Settings(one_time_code_length=length)

    def test_rejects_unknown_code_store_backend(self):
        """Only redis and memory backends exist."""
        with pytest.raises(ValidationError):
            Settings(code_store_backend="memcached")


class TestDefaults:
    """Settings have working defaults for local development."""

    def test_token_lifetimes(self):
        """Access tokens last 15 minutes, refresh tokens 7 days."""
        s = Settings()
        assert s.access_token_ttl_minutes == 15
        assert s.refresh_token_ttl_days == 7

    def test_refresh_cookie(self):
        """Cookie is qid, scoped to /refresh_token, secure."""
        s = Settings()
        assert s.refresh_cookie_name == "qid"
        assert s.refresh_cookie_path == "/refresh_token"
        assert s.cookie_secure is True
        assert s.cookie_samesite == "lax"

    def test_one_time_codes(self):
        """Codes are six digits and live for an hour."""
        s = Settings()
        assert s.one_time_code_length == 6
        assert s.one_time_code_charset == "numeric"
        assert s.one_time_code_ttl_seconds == 3600

    def test_password_change_keeps_sessions_by_default(self):
        """Changing a password does not revoke sessions unless enabled."""
        assert Settings().revoke_sessions_on_password_change is False

    def test_email_subject_prefix(self):
        """Subjects are prefixed with REMASTER."""
        assert Settings().email_subject_prefix == "REMASTER"


class TestDatabaseUrl:
    """Tests for computed database URLs."""

    def test_async_url_uses_asyncpg(self):
        """Async URL is built from the component settings."""
        s = Settings(
            database_user="u",
            database_password="p",
            database_host="db",
            database_port=5433,
            database_name="n",
        )
        assert s.database_url == "postgresql+asyncpg://u:p@db:5433/n"
        assert s.database_url_sync == "postgresql://u:p@db:5433/n"


class TestEnvLoading:
    """Settings are read from environment variables."""

    def test_reads_env_vars(self, monkeypatch):
        """Environment variables override defaults, case-insensitively."""
        monkeypatch.setenv("ACCESS_TOKEN_TTL_MINUTES", "5")
        monkeypatch.setenv("REVOKE_SESSIONS_ON_PASSWORD_CHANGE", "true")
        s = Settings()
        assert s.access_token_ttl_minutes == 5
        assert s.revoke_sessions_on_password_change is True
