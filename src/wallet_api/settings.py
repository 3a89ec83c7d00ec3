# src/wallet_api/settings.py
from typing import List, Optional
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

MIB = 1024 * 1024

# Allowed document types for POST /documents/upload
ALLOWED_DOCUMENT_TYPES = (
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
)

# Allowed image types for POST /auth/update-profile-picture
ALLOWED_PROFILE_PICTURE_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
)


class Settings(BaseSettings):
    """
    Single source of truth for all application settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from wallet_api.settings import get_settings
        settings = get_settings()
        bucket_name = settings.s3_bucket_name
    """

    # Application Settings
    app_name: str = Field(
        default="wallet-api",
        description="Application name"
    )

    environment: str = Field(
        default="development",
        description="development or production; production hides upstream error messages"
    )

    # Deployment Mode
    deployment_mode: str = Field(
        default="local-dev",
        description="Deployment mode: local-dev, aws-mock, or aws-prod"
    )

    # AWS Core Settings
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_access_key_id: Optional[str] = Field(
        default=None,
        alias="AWS_ACCESS_KEY_ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default=None,
        alias="AWS_SECRET_ACCESS_KEY"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL"
    )

    # S3 Configuration
    s3_bucket_name: str = Field(
        default="wallet-documents",
        description="S3 bucket holding documents and profile pictures"
    )

    # Database Configuration
    database_path: str = Field(
        default="wallet.db",
        description="SQLite file backing the document store"
    )

    # Identity
    jwt_secret: str = Field(
        default="change-me",
        description="HMAC secret for session tokens"
    )

    jwt_algorithm: str = Field(
        default="HS256",
        description="Session token signing algorithm"
    )

    token_ttl_seconds: int = Field(
        default=3600,
        gt=0,
        description="Lifetime of an issued session token"
    )

    # Storage quota
    max_storage_bytes: int = Field(
        default=50 * MIB,
        gt=0,
        description="Cumulative per-user byte quota"
    )

    max_document_bytes: int = Field(
        default=10 * MIB,
        gt=0,
        description="Per-file cap for uploaded documents"
    )

    max_profile_picture_bytes: int = Field(
        default=5 * MIB,
        gt=0,
        description="Per-file cap for profile pictures"
    )

    signed_url_ttl_seconds: int = Field(
        default=365 * 24 * 60 * 60,
        gt=0,
        description="Lifetime of issued read URLs"
    )

    # External calls
    external_call_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Connect/read timeout for object store and database calls"
    )

    cas_max_attempts: int = Field(
        default=5,
        ge=1,
        description="Attempts for optimistic compare-and-set updates"
    )

    cors_allow_origins: List[str] = Field(
        default=["*"],
        description="Origins allowed by the CORS middleware"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator('deployment_mode')
    @classmethod
    def validate_deployment_mode(cls, v):
        """Validate deployment mode is one of the allowed values."""
        valid_modes = ["local-dev", "aws-mock", "aws-prod"]
        if v not in valid_modes:
            raise ValueError(f"Invalid deployment_mode: {v}. Must be one of {valid_modes}")
        return v

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        valid = ["development", "production"]
        if v not in valid:
            raise ValueError(f"Invalid environment: {v}. Must be one of {valid}")
        return v

    @model_validator(mode='after')
    def set_local_endpoint_defaults(self):
        """Auto-set endpoint URL and mock credentials for aws-mock mode."""
        if self.deployment_mode == "aws-mock":
            if self.aws_endpoint_url is None:
                self.aws_endpoint_url = "http://localhost:5000"
            if self.aws_access_key_id is None:
                self.aws_access_key_id = "mock"
            if self.aws_secret_access_key is None:
                self.aws_secret_access_key = "mock"
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
