"""
Configuration management for the EcoGrader system.

Uses Pydantic Settings for type-safe configuration loading from environment variables.
All configuration is validated at startup to fail fast on misconfiguration.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings are validated at startup. Missing required fields
    will raise clear validation errors.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Oracle (LLM) API Configuration
    # ==========================================================================
    gemini_api_key: str = Field(
        ...,
        description="API key for the grading oracle (OpenAI-compatible endpoint)",
        min_length=10,
    )

    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/openai",
        description="Base URL for the OpenAI-compatible oracle endpoint",
    )

    gemini_model: str = Field(
        default="gemini-2.5-flash",
        description="Model used for grading and authoring",
    )

    quiz_api_key: str | None = Field(
        default=None,
        description="Optional separate key for quiz and model-answer generation",
    )

    llm_temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Temperature for oracle generation (low for consistent grading)",
    )

    llm_max_tokens: int = Field(
        default=4096,
        ge=64,
        description="Maximum tokens in an oracle reply",
    )

    # ==========================================================================
    # Retry & Rate Limit Configuration
    # ==========================================================================
    llm_max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries on HTTP 429 / connection failure before giving up",
    )

    llm_retry_base_delay: float = Field(
        default=2.0,
        ge=0.0,
        description="Base delay in seconds for exponential backoff",
    )

    llm_retry_max_delay: float = Field(
        default=30.0,
        ge=0.0,
        description="Upper bound on a single backoff delay",
    )

    oracle_requests_per_second: float = Field(
        default=2.0,
        gt=0.0,
        description="Sustained oracle request rate (token bucket refill rate)",
    )

    oracle_burst: int = Field(
        default=1,
        ge=1,
        description="Token bucket capacity",
    )

    # ==========================================================================
    # Grading Configuration
    # ==========================================================================
    min_content_length: int = Field(
        default=10,
        ge=0,
        description="Submissions must have more stripped characters than this to be graded",
    )

    # ==========================================================================
    # Storage Configuration
    # ==========================================================================
    job_ttl_seconds: int = Field(
        default=3600,
        gt=0,
        description="Expiry for video generation job records",
    )

    redis_url: str | None = Field(
        default=None,
        description="Redis URL for the job store; in-memory store is used when unset",
    )

    # ==========================================================================
    # Logging
    # ==========================================================================
    log_level: str = Field(default="INFO")

    @field_validator("gemini_base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensure base URL doesn't have trailing slash."""
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and check the log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are only loaded once.
    """
    return Settings()  # type: ignore[call-arg]
