"""
Configuration and settings for the family album backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "dev-secret-change-me"


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service.

    Field names map to environment variables case-insensitively, so
    ``database_url`` is read from ``DATABASE_URL``.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # Auth
    jwt_secret: str = Field(default=DEFAULT_JWT_SECRET)
    jwt_algorithm: str = Field(default="HS256")
    jwt_expires_days: int = Field(default=7)

    # Uploads
    max_upload_bytes: int = Field(default=10 * 1024 * 1024)

    # S3-compatible image hosting
    s3_endpoint: Optional[str] = Field(default=None)
    s3_region: Optional[str] = Field(default=None)
    s3_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    image_public_base_url: Optional[str] = Field(default=None)

    # Payments (Stripe)
    stripe_secret_key: Optional[str] = Field(default=None)
    stripe_publishable_key: Optional[str] = Field(default=None)
    frontend_url: str = Field(default="http://localhost:3000")
    default_amount: int = Field(default=19900)
    default_currency: str = Field(default="inr")
    product_name: str = Field(default="Family Album Pro")
    product_description: str = Field(
        default="Unlock uploads & family tree features"
    )

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
