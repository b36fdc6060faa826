"""Application configuration and settings management.

This module defines the application settings loaded from environment
variables and provides a cached accessor for them.
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Attributes:
        DATABASE_URL: Database connection string.
        BASE_URL: Public base URL of the application, used for asset links.
        MEDIA_ROOT: Directory where uploaded files are written.
        MEDIA_URL: URL path under which ``MEDIA_ROOT`` is served.
        CONTACT_IMAGE_DIR: Subdirectory of ``MEDIA_ROOT`` for contact images.
        MAX_IMAGE_BYTES: Largest accepted contact image, in bytes.
        DEFAULT_PER_PAGE: Page size used when none (or a non-positive one) is given.
        MAX_PER_PAGE: Upper bound for the requested page size.
        TOKEN_BYTES: Random bytes in each issued bearer token.
        ALLOWED_ORIGINS: Allowed origins for CORS.
        ENVIRONMENT: ``development`` or ``production``.
        LOG_LEVEL: Root log level.
    """

    DATABASE_URL: str = "sqlite:///./contactbook.db"
    BASE_URL: str = "http://localhost:8000"
    MEDIA_ROOT: str = "./storage/public"
    MEDIA_URL: str = "/storage"
    CONTACT_IMAGE_DIR: str = "contacts"
    MAX_IMAGE_BYTES: int = 2048 * 1024
    DEFAULT_PER_PAGE: int = 15
    MAX_PER_PAGE: int = 100
    TOKEN_BYTES: int = 40
    ALLOWED_ORIGINS: List[str] = ["*"]
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="allow")


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings.

    The settings object is cached to prevent reloading environment
    variables multiple times during application lifetime.
    """

    return Settings()
