"""Application configuration with validation."""

from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator
from typing import List


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class ConfigurationError(Exception):
    """Raised when application configuration is invalid for the environment."""
    pass


class Settings(BaseSettings):
    """
    Application settings with validation.

    Uses Pydantic for configuration validation, preventing
    common security issues like wildcard CORS.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    cors_allowed_origins: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./planreview.db",
        description="Database connection URL"
    )
    # Connection pool tuning (PostgreSQL only; ignored for SQLite).
    db_pool_size: int = Field(
        default=5,
        description="Number of persistent database connections"
    )
    db_max_overflow: int = Field(
        default=10,
        description="Extra connections allowed during traffic bursts"
    )
    db_pool_timeout: int = Field(
        default=30,
        description="Seconds to wait for a connection from the pool before raising"
    )
    db_pool_recycle: int = Field(
        default=1800,
        description="Seconds before a connection is recycled (prevents stale connections)"
    )

    # Authentication
    # AUTH_ENABLED: when False, every request runs as DEV_USER_ID (dev mode).
    jwt_secret_key: str = Field(
        default="dev-insecure-key-change-me",
        description="JWT signing secret (override in production)"
    )
    jwt_algorithm: str = Field(default="HS256")
    auth_enabled: bool = Field(
        default=False,
        description="Enable JWT authentication (False for development)"
    )
    dev_user_id: str = Field(
        default="dev-user",
        description="User id assumed for every request when auth is disabled"
    )

    # Integration (generation API via LiteLLM)
    # LiteLLM model string, e.g. "anthropic/claude-3-5-sonnet-20241022"
    integration_model: str = Field(
        default="anthropic/claude-3-5-sonnet-20241022",
        description="LiteLLM model string used to rewrite documents"
    )
    integration_api_key: str = Field(
        default="",
        description="API key for the generation provider"
    )
    integration_api_base: str = Field(
        default="",
        description="Base URL for the generation provider (optional)"
    )
    integration_max_tokens: int = Field(
        default=8192,
        description="Upper bound on tokens returned by the generation API"
    )
    integration_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for a single generation API call"
    )
    integration_max_attempts: int = Field(
        default=2,
        description="Total attempts per job, including the first call"
    )
    integration_retry_delay_seconds: float = Field(
        default=2.0,
        description="Fixed delay between attempts"
    )
    integration_length_ratio: float = Field(
        default=3.0,
        description="Output is rejected when longer than ratio*input or shorter than input/ratio"
    )
    integration_require_fresh_base: bool = Field(
        default=True,
        description="Fail a job when the document changed after the model read it"
    )

    # Rate Limiting (per user, per action, fixed window)
    accept_rate_limit: int = Field(
        default=10,
        description="Accepts allowed per user per window"
    )
    accept_rate_window_seconds: int = Field(
        default=3600,
        description="Length of the accept rate-limit window"
    )

    # Worker
    worker_pool_size: int = Field(
        default=4,
        description="Background threads processing integration jobs"
    )
    worker_poll_interval: float = Field(
        default=2.0,
        description="Seconds between polls of the job table"
    )
    worker_dispatch_in_process: bool = Field(
        default=True,
        description="Run accepted jobs inside the API process (False = leave them for worker.py)"
    )
    stale_job_seconds: int = Field(
        default=600,
        description="Processing jobs older than this are returned to the queue on API or worker start"
    )
    job_poll_hint_seconds: float = Field(
        default=2.0,
        description="Polling interval suggested to clients for non-terminal jobs"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: 'json' for structured, 'text' for human-readable"
    )

    def get_cors_origins(self) -> List[str]:
        """
        Get CORS origins as a list.

        Parses comma-separated string and validates no wildcards.
        """
        origins = [origin.strip() for origin in self.cors_allowed_origins.split(',') if origin.strip()]

        # SECURITY: Prevent wildcard CORS
        if "*" in origins:
            raise ValueError(
                "Wildcard CORS (*) not allowed. "
                "Specify explicit origins in CORS_ALLOWED_ORIGINS"
            )

        return origins

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard Python logging levels."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator('integration_max_attempts')
    @classmethod
    def validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("integration_max_attempts must be at least 1")
        return v

    @model_validator(mode="after")
    def check_stale_threshold(self) -> "Settings":
        """A live job must not be requeued while its generation calls can still be running."""
        worst_case = (
            self.integration_max_attempts * self.integration_timeout_seconds
            + (self.integration_max_attempts - 1) * self.integration_retry_delay_seconds
        )
        if self.stale_job_seconds <= worst_case:
            raise ValueError(
                f"stale_job_seconds ({self.stale_job_seconds}) must exceed the worst-case "
                f"job duration ({worst_case:.0f}s)"
            )
        return self

    def validate_production_config(self) -> None:
        """Validate configuration for production environment.

        In production, fails startup if security-critical settings use insecure defaults.
        In development, returns silently and main.py logs warnings.

        Raises:
            ConfigurationError: If production config is insecure.
        """
        errors: list[str] = []

        if self.jwt_secret_key == "dev-insecure-key-change-me":
            errors.append(
                "JWT_SECRET_KEY is using the default insecure value. "
                "Generate a secure key: openssl rand -hex 32"
            )

        if not self.auth_enabled:
            errors.append(
                "AUTH_ENABLED is false. "
                "Authentication must be enabled in production."
            )

        if not self.integration_api_key:
            errors.append(
                "INTEGRATION_API_KEY is empty. Accepted comments will fail to integrate."
            )

        if errors and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is insecure:\n  - " + "\n  - ".join(errors)
            )

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        # Allow reading from environment variables with different case
        case_sensitive = False


# Global settings instance
settings = Settings()
