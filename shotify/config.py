"""
Configuration and settings for the Shotify backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    environment: str = Field(default="development")

    # Logging
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=False)

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # Auth
    jwt_secret: str = Field(
        default="your-super-secret-jwt-key-change-in-production"
    )
    jwt_algorithm: str = Field(default="HS256")
    jwt_expiration_hours: int = Field(default=72)

    # S3-compatible storage (AWS, MinIO, LocalStack)
    aws_region: str = Field(default="us-east-1")
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    aws_s3_bucket: Optional[str] = Field(default=None)
    aws_endpoint: Optional[str] = Field(default=None)
    storage_public_base_url: Optional[str] = Field(default=None)
    max_upload_bytes: int = Field(default=10 * 1024 * 1024)

    # CORS
    allowed_origins: list[str] = Field(default=["http://localhost:5173"])

    # Image proxy
    proxy_timeout_seconds: float = Field(default=15.0)
    proxy_allowed_hosts: list[str] = Field(default_factory=list)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)
    seed_templates_on_startup: bool = Field(default=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
