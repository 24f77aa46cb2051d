"""
citybuilder/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, JWT secret, SMTP, ImageKit)
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
        default="citybuilder",
        description="MongoDB database name"
    )

    # Authentication
    JWT_SECRET: Optional[str] = Field(
        default="change-me-in-production",
        description="HMAC secret used to sign session tokens"
    )
    JWT_ALGORITHM: str = Field(
        default="HS256",
        description="JWT signing algorithm"
    )
    JWT_EXPIRE_DAYS: int = Field(
        default=31,
        description="Session token lifetime in days"
    )
    BCRYPT_ROUNDS: int = Field(
        default=10,
        description="bcrypt cost factor for password hashes"
    )
    OTP_EXPIRE_MINUTES: int = Field(
        default=15,
        description="Validity window for verification and reset codes"
    )

    # Mail (SMTP relay)
    SMTP_HOST: Optional[str] = Field(
        default=None,
        description="SMTP relay host. Mail is skipped when unset"
    )
    SMTP_PORT: int = Field(
        default=587,
        description="SMTP relay port"
    )
    SMTP_SECURE: bool = Field(
        default=False,
        description="Use implicit TLS (port 465) instead of STARTTLS"
    )
    SMTP_USER: Optional[str] = None
    SMTP_PASS: Optional[str] = None
    EMAIL_FROM: str = Field(
        default="City Builder <noreply@citybuilder.com>",
        description="Sender address for outgoing mail"
    )
    SUPPORT_EMAIL: str = Field(
        default="support@citybuilder.com",
        description="Contact address shown in mail footers"
    )

    # ImageKit
    IMAGEKIT_PUBLIC_KEY: Optional[str] = None
    IMAGEKIT_PRIVATE_KEY: Optional[str] = Field(
        default=None,
        description="Private key used to sign client upload credentials"
    )
    IMAGEKIT_AUTH_TTL_SECONDS: int = Field(
        default=1800,
        description="Lifetime of upload credentials (ImageKit rejects > 3600)"
    )

    # Builds
    MAXIMUM_STEP_PHOTOS: int = Field(
        default=8,
        description="Maximum photos stored on a single build step"
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
    API_PREFIX: str = Field(
        default="/api",
        description="API route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=[
            "http://localhost:8081",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        description="Allowed CORS origins"
    )

    @validator("JWT_SECRET")
    def validate_jwt_secret(cls, v, values):
        """Ensure the signing secret is changed in production."""
        if values.get("ENVIRONMENT") == "production" and v == "change-me-in-production":
            raise ValueError("JWT_SECRET must be changed in production environment")
        return v

    @validator("IMAGEKIT_AUTH_TTL_SECONDS")
    def validate_imagekit_ttl(cls, v):
        if v <= 0 or v >= 3600:
            raise ValueError("IMAGEKIT_AUTH_TTL_SECONDS must be between 1 and 3599")
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
    def mail_enabled(self) -> bool:
        return bool(self.SMTP_HOST)

    class Config:
        env_file = ".env"
        case_sensitive = True
        env_file_encoding = "utf-8"
        extra = "ignore"


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

    if not settings.JWT_SECRET:
        errors.append("JWT_SECRET is required")

    # Production-specific validations
    if settings.is_production:
        if not settings.IMAGEKIT_PRIVATE_KEY:
            errors.append("IMAGEKIT_PRIVATE_KEY is required in production")
        if not settings.SMTP_HOST:
            errors.append("SMTP_HOST is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
