"""Application configuration with validation."""

from enum import Enum
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
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
    common mistakes like wildcard CORS or a production deployment
    without a generation model.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment (development/production)"
    )

    # CORS Configuration
    cors_allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:3001",
        description="Allowed CORS origins (comma-separated)"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite:///./gridfill.db",
        description="Database connection URL"
    )
    # Connection pool tuning (PostgreSQL only; ignored for SQLite).
    # Bulk jobs hold one connection per busy worker, so keep
    # db_pool_size + db_max_overflow >= bulk_max_concurrency + request load.
    db_pool_size: int = Field(
        default=10,
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

    # Rate Limiting
    # Pollers hit the status endpoints about once a second per open batch.
    rate_limit_per_minute: int = Field(
        default=240,
        description="Maximum requests per client per minute"
    )
    # Single and bulk job submissions start generation work
    submission_rate_limit_per_minute: int = Field(
        default=30,
        description="Maximum job submissions per client per minute"
    )

    # Generation backend (LiteLLM model strings, e.g. "openai/gpt-4.1")
    # Empty string = prompt generation disabled (every prompt cell fails fast)
    generation_model: str = Field(
        default="",
        description="LiteLLM model used for prompt-based cell generation (empty = disabled)"
    )
    generation_api_key: str = Field(
        default="",
        description="API key for the generation provider"
    )
    generation_api_base: str = Field(
        default="",
        description="Base URL for the generation provider (optional)"
    )
    web_search_model: str = Field(
        default="",
        description="LiteLLM model for web-search-augmented prompts (falls back to generation_model)"
    )
    web_search_api_key: str = Field(
        default="",
        description="API key for the web search model (falls back to generation_api_key)"
    )
    generation_timeout_seconds: int = Field(
        default=120,
        description="Wall-clock limit for a single generation call"
    )
    generation_max_tokens: int = Field(
        default=1024,
        description="Maximum output tokens per generated cell"
    )

    # Circuit breaker protecting each generation model endpoint
    circuit_failure_threshold: int = Field(
        default=5,
        description="Consecutive failures before a model endpoint is short-circuited"
    )
    circuit_cooldown_seconds: float = Field(
        default=60.0,
        description="Seconds an open circuit waits before allowing a probe request"
    )

    # Bulk job execution
    bulk_max_concurrency: int = Field(
        default=8,
        ge=1,
        description="Worker threads executing bulk sub-jobs; extra cells queue"
    )
    resume_pending_bulk_jobs: bool = Field(
        default=True,
        description="Re-dispatch pending sub-jobs of unfinished bulk jobs at startup"
    )

    # Notifications
    # RESEND_API_KEY empty = notifications are logged instead of emailed
    resend_api_key: str = Field(
        default="",
        description="Resend API key for batch notification emails"
    )
    notification_from_address: str = Field(
        default="Gridfill <notifications@gridfill.local>",
        description="Sender address for notification emails"
    )
    notification_timeout_seconds: float = Field(
        default=10.0,
        description="HTTP timeout for a single notification delivery"
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

    def validate_production_config(self) -> list[str]:
        """Validate configuration for production environment.

        In production, fails startup if required settings are missing or insecure.
        In development, returns the problems so main.py can log them as warnings.

        Raises:
            ConfigurationError: If production config is unusable.
        """
        errors: list[str] = []

        if not self.generation_model:
            errors.append(
                "GENERATION_MODEL is empty. "
                "Every prompt-based cell would fail."
            )

        # Check for localhost CORS origins
        origins = self.get_cors_origins()
        localhost_origins = [o for o in origins if "localhost" in o or "127.0.0.1" in o]
        if localhost_origins:
            errors.append(
                f"CORS allows localhost origins: {localhost_origins}. "
                "Remove localhost origins for production."
            )

        if errors and self.environment == Environment.PRODUCTION:
            raise ConfigurationError(
                "Production configuration is incomplete:\n  - " + "\n  - ".join(errors)
            )
        return errors

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        # Allow reading from environment variables with different case
        case_sensitive = False


# Global settings instance
settings = Settings()
