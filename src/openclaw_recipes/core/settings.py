"""Application settings and configuration.

This module defines all configuration options for the OpenClaw Recipes API.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files. The
    security policy values (challenge lifetime, proof-of-work difficulty, rate
    limits) live here rather than in the services that enforce them.
    """

    # Application metadata
    app_name: str = Field(default="OpenClaw Recipes", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./recipes.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    auto_create_tables: bool = Field(default=True, alias="AUTO_CREATE_TABLES")

    # Shared store for challenges, nonces and rate-limit buckets. When unset the
    # in-process stores are used, which is only correct for a single instance.
    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    # Operator access to the audit endpoints; audit endpoints are closed when unset
    admin_token: str | None = Field(default=None, alias="ADMIN_TOKEN")

    # Challenge and replay protection
    challenge_ttl_seconds: int = Field(default=300, alias="CHALLENGE_TTL_SECONDS")
    nonce_retention_seconds: int = Field(default=3600, alias="NONCE_RETENTION_SECONDS")
    request_signature_max_age_seconds: int = Field(
        default=300,
        alias="REQUEST_SIGNATURE_MAX_AGE_SECONDS",
    )

    # Proof-of-Work difficulty (leading hex zeros required)
    pow_difficulty: int = Field(default=4, alias="POW_DIFFICULTY")
    pow_max_iterations: int = Field(default=100_000_000, alias="POW_MAX_ITERATIONS")

    # Fixed-window rate limits
    rate_limit_register_limit: int = Field(default=5, alias="RATE_LIMIT_REGISTER_LIMIT")
    rate_limit_register_window_seconds: int = Field(
        default=3600, alias="RATE_LIMIT_REGISTER_WINDOW_SECONDS"
    )
    rate_limit_project_limit: int = Field(default=10, alias="RATE_LIMIT_PROJECT_LIMIT")
    rate_limit_project_window_seconds: int = Field(
        default=3600, alias="RATE_LIMIT_PROJECT_WINDOW_SECONDS"
    )
    rate_limit_message_limit: int = Field(default=100, alias="RATE_LIMIT_MESSAGE_LIMIT")
    rate_limit_message_window_seconds: int = Field(
        default=3600, alias="RATE_LIMIT_MESSAGE_WINDOW_SECONDS"
    )
    rate_limit_challenge_limit: int = Field(default=20, alias="RATE_LIMIT_CHALLENGE_LIMIT")
    rate_limit_challenge_window_seconds: int = Field(
        default=60, alias="RATE_LIMIT_CHALLENGE_WINDOW_SECONDS"
    )
    rate_limit_rotate_key_limit: int = Field(default=5, alias="RATE_LIMIT_ROTATE_KEY_LIMIT")
    rate_limit_rotate_key_window_seconds: int = Field(
        default=3600, alias="RATE_LIMIT_ROTATE_KEY_WINDOW_SECONDS"
    )

    # Audit log
    audit_max_events: int = Field(default=10_000, alias="AUDIT_MAX_EVENTS")

    # Content limits
    message_max_length: int = Field(default=5000, alias="MESSAGE_MAX_LENGTH")
    metadata_field_max_length: int = Field(default=500, alias="METADATA_FIELD_MAX_LENGTH")

    # Reputation awarded for joining a project
    reputation_join_points: int = Field(default=5, alias="REPUTATION_JOIN_POINTS")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=False, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        populate_by_name=True,
        extra="ignore",
    )

    @property
    def challenge_ttl_ms(self) -> int:
        """Return the challenge lifetime in milliseconds."""
        return self.challenge_ttl_seconds * 1000

    @property
    def nonce_retention_ms(self) -> int:
        """Return the nonce retention window in milliseconds."""
        return self.nonce_retention_seconds * 1000

    @property
    def request_signature_max_age_ms(self) -> int:
        """Return the accepted clock skew for request-bound signatures."""
        return self.request_signature_max_age_seconds * 1000


settings = Settings()
