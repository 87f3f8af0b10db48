"""
Configuration Management for Tap Karte
======================================

This module handles all application configuration using the Settings pattern
with Pydantic. This approach provides:

1. **Environment Variable Support**: Easy deployment configuration
2. **Validation**: Catches configuration errors at startup
3. **Defaults**: Sensible defaults for local development

Design Pattern: Singleton-like Settings
We use a cached function to ensure we only load settings once,
but still allow for easy testing with different configurations.
"""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


DEFAULT_JWT_SECRET = "change-me-in-production"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are prefixed with TAPKARTE_ to avoid conflicts.
    Example: TAPKARTE_GEMINI_API_KEY=...

    Priority order (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values defined here
    """

    # =================================================================
    # Environment
    # =================================================================
    environment: str = Field(
        default="development",
        description="Deployment environment: development, staging or production"
    )

    app_name: str = Field(default="タップカルテ", description="Application display name")
    app_version: str = Field(default="1.0.0", description="Application version")

    # =================================================================
    # LLM Configuration
    # =================================================================
    llm_provider: str = Field(
        default="gemini",
        description="""
        LLM backend used for note conversion. Options: gemini, anthropic

        Gemini is the primary provider; Anthropic Claude is kept as a backup.
        """
    )

    gemini_api_key: Optional[str] = Field(
        default=None,
        description="Google Gemini API key"
    )

    gemini_model: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model name"
    )

    anthropic_api_key: Optional[str] = Field(
        default=None,
        description="Anthropic API key (backup provider)"
    )

    anthropic_model: str = Field(
        default="claude-3-5-sonnet-latest",
        description="Anthropic model name"
    )

    llm_temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="""
        Temperature for text generation (0.0 - 2.0)

        Clinical records should be consistent, so keep this low.
        """
    )

    llm_timeout: int = Field(
        default=30,
        description="Timeout in seconds for LLM requests"
    )

    llm_max_output_tokens: int = Field(
        default=2048,
        description="Upper bound on tokens generated per conversion"
    )

    demo_mode_fallback: bool = Field(
        default=True,
        description="""
        Return a canned demo note when no API key is configured.

        Lets the UI be exercised locally without credentials.
        """
    )

    # =================================================================
    # Conversion Limits
    # =================================================================
    default_char_limit: int = Field(
        default=500,
        description="Output character limit used when the request omits one"
    )

    min_char_limit: int = Field(
        default=100,
        description="Smallest accepted output character limit"
    )

    max_char_limit: int = Field(
        default=1000,
        description="Largest accepted output character limit"
    )

    max_input_length: int = Field(
        default=50000,
        description="Maximum input text length in characters"
    )

    # =================================================================
    # Authentication
    # =================================================================
    jwt_secret_key: str = Field(
        default=DEFAULT_JWT_SECRET,
        description="Secret used to sign JWT access tokens"
    )

    jwt_algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm"
    )

    jwt_access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,  # 7 days
        description="Access token lifetime in minutes"
    )

    bcrypt_rounds: int = Field(
        default=12,
        description="bcrypt cost factor for password hashing"
    )

    google_client_id: Optional[str] = Field(
        default=None,
        description="Google OAuth client id exposed to the browser"
    )

    google_tokeninfo_url: str = Field(
        default="https://www.googleapis.com/oauth2/v1/tokeninfo",
        description="Google endpoint used to verify OAuth access tokens"
    )

    google_timeout: int = Field(
        default=5,
        description="Timeout in seconds for the Google tokeninfo request"
    )

    # =================================================================
    # Persistence
    # =================================================================
    database_url: str = Field(
        default="sqlite:///./tapkarte.db",
        description="SQLAlchemy URL for records, performance stats and security logs"
    )

    record_history: bool = Field(
        default=True,
        description="""
        Persist conversion records (input and output text).

        Disable for privacy-first deployments. Nothing new is saved, so
        history endpoints only show records stored before the switch.
        """
    )

    record_performance: bool = Field(
        default=True,
        description="Persist per-request performance stats for /api routes"
    )

    record_security_events: bool = Field(
        default=True,
        description="Persist security events such as PII detections (never the content)"
    )

    redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for the user store. None = in-memory store"
    )

    # =================================================================
    # API Configuration
    # =================================================================
    api_host: str = Field(default="0.0.0.0", description="API bind host")
    api_port: int = Field(default=8000, description="API bind port")
    api_debug: bool = Field(
        default=False,
        description="Expose exception details in 500 responses"
    )

    cors_origins: list[str] = Field(
        default=[
            "http://localhost:3000",
            "https://tap-karte.com",
            "https://www.tap-karte.com",
            "https://tap-carte.pages.dev",
        ],
        description="Explicitly allowed CORS origins"
    )

    cors_origin_regex: Optional[str] = Field(
        default=r"^(https://.*\.tap-carte\.pages\.dev|http://localhost:\d+)$",
        description="Regex for additionally allowed CORS origins"
    )

    cors_allow_credentials: bool = Field(
        default=False,
        description="Allow credentials on CORS requests (bearer tokens need none)"
    )

    rate_limit_convert: str = Field(
        default="100/minute",
        description="slowapi rate limit applied to the conversion endpoint"
    )

    slow_request_threshold_ms: int = Field(
        default=2000,
        description="Requests slower than this are logged as warnings"
    )

    # =================================================================
    # Logging Configuration
    # =================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Python logging format string"
    )

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def active_llm_api_key(self) -> Optional[str]:
        """API key of the configured provider, if any."""
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return self.gemini_api_key

    @property
    def active_llm_model(self) -> str:
        if self.llm_provider == "anthropic":
            return self.anthropic_model
        return self.gemini_model

    class Config:
        """Pydantic configuration for Settings."""
        env_prefix = "TAPKARTE_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


def validate_environment(settings: Settings) -> tuple[bool, list[str]]:
    """
    Check that production-critical settings are configured.

    Development environments always pass; elsewhere a missing LLM key or
    the default JWT secret is reported.

    Returns:
        (is_valid, issues)
    """
    issues: list[str] = []

    if not settings.is_development:
        if not settings.active_llm_api_key:
            issues.append(
                f"{settings.llm_provider.upper()} API key is not configured for {settings.environment}"
            )
        if settings.jwt_secret_key == DEFAULT_JWT_SECRET:
            issues.append(f"JWT secret is not configured for {settings.environment}")

    return len(issues) == 0, issues


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached singleton).

    For testing, you can clear the cache:
        get_settings.cache_clear()

    Returns:
        Settings: Application settings instance
    """
    return Settings()


def get_settings_for_testing(**overrides) -> Settings:
    """
    Create a Settings instance with custom values for testing.

    Example:
        settings = get_settings_for_testing(
            database_url="sqlite:///./test.db",
            gemini_api_key=None,
        )

    Args:
        **overrides: Setting values to override

    Returns:
        Settings: New Settings instance with overrides applied
    """
    return Settings(**overrides)
