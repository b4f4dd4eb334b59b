"""
Application configuration loaded from environment variables.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file = ".env",
        env_file_encoding = "utf-8",
        populate_by_name = True
    )

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./bluecarbon.db", alias="DATABASE_URL")

    # Application
    app_name: str = Field(default="Blue Carbon Registry", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    port: int = Field(default=8000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cors_origins: List[str] = Field(default=["*"], alias="CORS_ORIGINS")

    # Auth (tokens are issued by the external auth service)
    jwt_secret: str = Field(default="bluecarbon-development-jwt-secret-change-me", alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_audience: Optional[str] = Field(default="authenticated", alias="JWT_AUDIENCE")

    # Blob storage
    storage_backend: str = Field(default="local", alias="STORAGE_BACKEND")
    storage_root: str = Field(default="./storage", alias="STORAGE_ROOT")
    storage_url: Optional[str] = Field(default=None, alias="STORAGE_URL")
    storage_api_key: Optional[str] = Field(default=None, alias="STORAGE_API_KEY")
    max_upload_bytes: int = Field(default=50 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")

    # Ledger
    credit_serial_prefix: str = Field(default="BCC", alias="CREDIT_SERIAL_PREFIX")
    credit_reference_price: float = Field(default=50.0, alias="CREDIT_REFERENCE_PRICE")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
