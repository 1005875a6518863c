"""
Unified Configuration
All environment variables and settings in one place

Every analysis threshold that used to be a magic number (fallback confidence,
quality alert level, business hours, burnout risk ratio) lives here so it can
be overridden per deployment.
"""
from typing import Optional
import logging
from pydantic_settings import BaseSettings
from pydantic import Field, model_validator

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Unified application settings.
    Validates all environment variables at startup.
    """

    # ============================================================================
    # SERVER
    # ============================================================================

    environment: str = Field(default="production", description="Environment: dev/staging/production")
    port: int = Field(default=8080, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")

    # ============================================================================
    # LLM (OpenAI-compatible chat completions)
    # ============================================================================

    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    openai_model: str = Field(default="gpt-4o-mini", description="Chat completion model used for analysis")
    openai_base_url: Optional[str] = Field(default=None, description="Custom OpenAI-compatible endpoint")

    # ============================================================================
    # LLM RESILIENCE
    # ============================================================================

    llm_request_timeout: float = Field(default=60.0, description="Per-request timeout in seconds")
    llm_max_retries: int = Field(default=0, description="Retries for transient provider errors (0 = no retry)")
    llm_retry_initial_delay: float = Field(default=1.0, description="First backoff delay in seconds (doubles per attempt)")

    # ============================================================================
    # ANALYSIS
    # ============================================================================

    analysis_timezone: str = Field(default="UTC", description="IANA timezone for hour-of-day and weekday buckets")
    business_hours_start: int = Field(default=9, description="First business hour (inclusive)")
    business_hours_end: int = Field(default=18, description="Last business hour (inclusive)")

    default_confidence_score: int = Field(default=75, description="Confidence used when the LLM response omits one")
    fallback_confidence_score: int = Field(default=75, description="Confidence reported on fallback results")
    fallback_analysis_depth: int = Field(default=70, description="Analysis depth reported on fallback results")
    quality_alert_threshold: float = Field(default=70.0, description="Data quality below this needs attention")
    high_risk_after_hours_ratio: float = Field(default=0.3, description="After-hours ratio above which a user is flagged")

    # ============================================================================
    # API
    # ============================================================================

    rate_limit_enabled: bool = Field(default=True, description="Disable to run without per-IP limits (local load tests)")
    analysis_rate_limit: str = Field(default="20/minute", description="slowapi limit for analysis endpoints")
    cors_allow_origins: str = Field(default="http://localhost:3000", description="Comma-separated allowed origins")

    # ============================================================================
    # PRODUCTION INFRASTRUCTURE
    # ============================================================================

    # Error tracking (Sentry)
    sentry_dsn: Optional[str] = Field(default=None, description="Sentry DSN for error tracking")

    @model_validator(mode='after')
    def check_business_hours(self):
        """Reject business hours that cannot describe a working day."""
        if not (0 <= self.business_hours_start <= self.business_hours_end <= 23):
            raise ValueError(
                f"Invalid business hours: {self.business_hours_start}-{self.business_hours_end} "
                "(expected 0 <= start <= end <= 23)"
            )

        if not self.openai_api_key:
            logger.info("ℹ️  OPENAI_API_KEY not set: analysis endpoints will be unavailable")

        return self

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()
