"""
app/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, Twilio, SMTP, secrets)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, validator
from pydantic_settings import BaseSettings
from typing import Optional, Literal


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # MongoDB
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="gironde_leads",
        description="MongoDB database name"
    )

    # Twilio (SMS + Verify)
    TWILIO_ACCOUNT_SID: Optional[str] = Field(
        default=None,
        description="Twilio account SID"
    )
    TWILIO_AUTH_TOKEN: Optional[str] = Field(
        default=None,
        description="Twilio auth token"
    )
    TWILIO_PHONE_NUMBER: str = Field(
        default="+33756800000",
        description="Sender number for verification SMS"
    )
    TWILIO_VERIFY_SERVICE_SID: Optional[str] = Field(
        default=None,
        description="Twilio Verify v2 service SID (VAxxx)"
    )
    TWILIO_TIMEOUT: float = Field(
        default=10.0,
        description="Twilio request timeout in seconds"
    )

    # SMTP
    EMAIL_HOST: str = Field(
        default="bus.o2switch.net",
        description="SMTP host"
    )
    EMAIL_PORT: int = Field(
        default=587,
        description="SMTP port (465 = implicit TLS, otherwise STARTTLS)"
    )
    EMAIL_USER: Optional[str] = Field(
        default=None,
        description="SMTP username"
    )
    EMAIL_PASS: Optional[str] = Field(
        default=None,
        description="SMTP password"
    )
    EMAIL_FROM: str = Field(
        default="no-reply@estimation-immobilier-gironde.fr",
        description="Default sender address"
    )
    EMAIL_FROM_NAME: str = Field(
        default="Estimation Gironde",
        description="Default sender display name"
    )
    ADMIN_EMAIL: str = Field(
        default="contact@estimation-immobilier-gironde.fr",
        description="Address receiving admin notifications"
    )
    EMAIL_TIMEOUT: int = Field(
        default=30,
        description="SMTP timeout in seconds"
    )

    # Public site
    APP_URL: str = Field(
        default="https://estimation-immobilier-gironde.fr",
        description="Public site URL (unsubscribe links, email CTAs)"
    )

    # Sessions & verification
    SESSION_TIMEOUT_MINUTES: int = Field(
        default=30,
        description="Homepage verification session lifetime in minutes"
    )
    LEAD_TOKEN_TTL_HOURS: int = Field(
        default=24,
        description="Lead context token lifetime in hours"
    )
    SMS_CODE_TTL_MINUTES: int = Field(
        default=10,
        description="Local SMS code validity in minutes"
    )
    SMS_MAX_ATTEMPTS: int = Field(
        default=5,
        description="Maximum wrong code submissions per SMS code"
    )

    # Email sequences
    EMAIL_SCHEDULER_ENABLED: bool = Field(
        default=True,
        description="Run the email sequence scheduler inside the API process"
    )
    EMAIL_SCHEDULER_INTERVAL_MINUTES: int = Field(
        default=15,
        description="Interval between two scans of due sequence emails"
    )
    EMAIL_SCHEDULER_INITIAL_DELAY_SECONDS: int = Field(
        default=30,
        description="Delay before the first scan after startup"
    )

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )
    TRUSTED_PROXIES: list = Field(
        default=[],
        description="Reverse proxy addresses whose X-Forwarded-For header is honoured"
    )

    # Security
    SECRET_KEY: str = Field(
        default="change-me-in-production",
        description="Secret used to sign unsubscribe tokens"
    )
    ADMIN_API_TOKEN: Optional[str] = Field(
        default=None,
        description="Bearer token required on admin routes"
    )

    @validator("SECRET_KEY")
    def validate_secret_key(cls, v, values):
        """Ensure secret key is changed in production."""
        if values.get("ENVIRONMENT") == "production" and v == "change-me-in-production":
            raise ValueError("SECRET_KEY must be changed in production environment")
        return v

    @validator("ADMIN_API_TOKEN")
    def validate_admin_token(cls, v, values):
        """Ensure admin routes are protected in production."""
        if values.get("ENVIRONMENT") == "production" and not v:
            raise ValueError("ADMIN_API_TOKEN is required in production environment")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def twilio_configured(self) -> bool:
        return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN)

    @property
    def smtp_configured(self) -> bool:
        return bool(self.EMAIL_USER and self.EMAIL_PASS)

    class Config:
        env_file = ".env"
        case_sensitive = True
        env_file_encoding = "utf-8"


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    errors = []

    if not settings.MONGODB_URL:
        errors.append("MONGODB_URL is required")

    if not settings.APP_URL:
        errors.append("APP_URL is required")

    # Production-specific validations
    if settings.is_production:
        if not settings.twilio_configured:
            errors.append("TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN are required in production")
        if not settings.smtp_configured:
            errors.append("EMAIL_USER and EMAIL_PASS are required in production")
        if not settings.ADMIN_API_TOKEN:
            errors.append("ADMIN_API_TOKEN is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
