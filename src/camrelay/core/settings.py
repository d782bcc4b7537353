"""Application settings and configuration.

This module defines all configuration options for the camrelay service.
Settings are loaded from environment variables with sensible defaults; the
two account passwords have no default and must be provided.
"""

import secrets

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or a `.env` file.
    """

    # Application metadata
    app_name: str = Field(default="camrelay", alias="APP_NAME")
    app_version: str = Field(default="1.0.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, alias="PORT")

    # Session signing; a fresh key per process invalidates cookies on restart.
    secret_key: str = Field(default_factory=lambda: secrets.token_hex(32), alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Fixed accounts
    admin_username: str = Field(default="admin", alias="ADMIN_USERNAME")
    admin_password: str = Field(alias="ADMIN_PASSWORD")
    user_username: str = Field(default="user", alias="USER_USERNAME")
    user_password: str = Field(alias="USER_PASSWORD")

    # Session cookie
    session_cookie_name: str = Field(default="sid", alias="SESSION_COOKIE_NAME")
    session_cookie_secure: bool = Field(default=False, alias="SESSION_COOKIE_SECURE")
    session_ttl_hours: int = Field(default=24, alias="SESSION_TTL_HOURS")

    # Login throttling (failed attempts per origin inside a sliding window)
    rate_limit_max_attempts: int = Field(default=5, alias="RATE_LIMIT_MAX_ATTEMPTS")
    rate_limit_window_seconds: int = Field(default=15 * 60, alias="RATE_LIMIT_WINDOW_SECONDS")
    trust_forwarded_for: bool = Field(default=True, alias="TRUST_FORWARDED_FOR")

    # Audit trail
    login_attempt_log: str = Field(default="login_attempts.log", alias="LOGIN_ATTEMPT_LOG")
    geo_lookup_enabled: bool = Field(default=True, alias="GEO_LOOKUP_ENABLED")
    geo_lookup_url: str = Field(
        default="https://ipapi.co/{ip}/json/",
        alias="GEO_LOOKUP_URL",
    )
    geo_lookup_timeout_seconds: float = Field(default=3.0, alias="GEO_LOOKUP_TIMEOUT_SECONDS")

    # Broadcast relay
    relay_send_timeout_seconds: float = Field(default=2.0, alias="RELAY_SEND_TIMEOUT_SECONDS")
    relay_require_session: bool = Field(default=False, alias="RELAY_REQUIRE_SESSION")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def session_ttl_seconds(self) -> int:
        """Return the session lifetime in seconds."""
        return self.session_ttl_hours * 60 * 60


settings = Settings()  # type: ignore[call-arg]
