"""Application settings loaded from environment variables.

Environment Configuration:
    INSIGHTS_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: PostgreSQL connection string (required)

Auth Configuration (required in all environments):
    SUPABASE_JWKS_URL: Full URL to Supabase JWKS endpoint
    SUPABASE_ISSUER: Expected JWT issuer (trailing slash stripped)
    SUPABASE_AUDIENCES: Comma-separated list of allowed audiences
    SUPABASE_SERVICE_KEY: Backend-only service credential (required in staging/prod)

Policy Configuration:
    POLICY_TABLE_PATH: Optional JSON file replacing the built-in policy table
    LOOKUP_TIMEOUT_MS: Per-lookup timeout for ownership/role lookups

Recovery Configuration:
    SECURITY_MAX_ATTEMPTS: Failed security-answer attempts allowed per window
    SECURITY_ATTEMPT_WINDOW_SECONDS: Length of the rolling failure window
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - DATABASE_URL is always required
    - SUPABASE_JWKS_URL, SUPABASE_ISSUER, SUPABASE_AUDIENCES are required in all environments
    - SUPABASE_SERVICE_KEY is required in staging and prod only
    - Timeouts and rate-limit settings must be >= 1
    """

    insights_env: Environment = Field(default=Environment.LOCAL, alias="INSIGHTS_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]

    # Supabase auth settings (required in all environments)
    supabase_jwks_url: str | None = Field(default=None, alias="SUPABASE_JWKS_URL")
    supabase_issuer: str | None = Field(default=None, alias="SUPABASE_ISSUER")
    supabase_audiences: str | None = Field(default=None, alias="SUPABASE_AUDIENCES")
    supabase_service_key: str | None = Field(default=None, alias="SUPABASE_SERVICE_KEY")

    # Policy engine
    policy_table_path: str | None = Field(default=None, alias="POLICY_TABLE_PATH")
    lookup_timeout_ms: int = Field(default=2000, alias="LOOKUP_TIMEOUT_MS")

    # Security question recovery
    security_max_attempts: int = Field(default=3, alias="SECURITY_MAX_ATTEMPTS")
    security_attempt_window_seconds: int = Field(
        default=900, alias="SECURITY_ATTEMPT_WINDOW_SECONDS"
    )  # 15 minutes

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator(
        "lookup_timeout_ms",
        "security_max_attempts",
        "security_attempt_window_seconds",
    )
    @classmethod
    def validate_positive(cls, value: int, info) -> int:
        if value < 1:
            raise ValueError(f"{info.field_name.upper()} must be >= 1")
        return value

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure required settings are set for all environments."""
        missing_auth = []
        if not self.supabase_jwks_url:
            missing_auth.append("SUPABASE_JWKS_URL")
        if not self.supabase_issuer:
            missing_auth.append("SUPABASE_ISSUER")
        if not self.supabase_audiences:
            missing_auth.append("SUPABASE_AUDIENCES")

        if missing_auth:
            raise ValueError(
                f"Missing required Supabase auth settings: {', '.join(missing_auth)}. "
                "Run 'supabase status' to get local values, or set these environment variables."
            )

        # SUPABASE_SERVICE_KEY is required only in staging/prod
        if self.insights_env in (Environment.STAGING, Environment.PROD):
            if not self.supabase_service_key:
                raise ValueError(
                    f"SUPABASE_SERVICE_KEY is required for INSIGHTS_ENV={self.insights_env.value}"
                )

        return self

    @property
    def audience_list(self) -> list[str]:
        """Parse comma-separated audiences into a list."""
        if self.supabase_audiences:
            return [a.strip() for a in self.supabase_audiences.split(",") if a.strip()]
        return []

    @property
    def normalized_issuer(self) -> str | None:
        """Return issuer with trailing slash stripped."""
        if self.supabase_issuer:
            return self.supabase_issuer.rstrip("/")
        return None

    @property
    def lookup_timeout_seconds(self) -> float:
        """Lookup timeout in seconds, as passed to registry calls."""
        return self.lookup_timeout_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
