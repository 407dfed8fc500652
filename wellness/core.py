"""Application configuration and settings management.

This module defines the service and client settings loaded from environment
variables and provides cached accessors for both.
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service configuration loaded from environment variables.

    Attributes:
        DATABASE_URL: Database connection string.
        ENVIRONMENT: Deployment environment. Error responses include the
            underlying exception text only in ``development``.
        LOG_LEVEL: Root log level for the service.
        ALLOWED_ORIGINS: Allowed origins for CORS.
        SEED_SAMPLE_DATA: Insert sample entries and contacts on startup.
        SAMPLE_USER_ID: Owner of the seeded sample rows.
    """

    DATABASE_URL: str = "sqlite:///./wellness.db"
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: List[str] = ["*"]
    SEED_SAMPLE_DATA: bool = False
    SAMPLE_USER_ID: int = 1

    model_config = SettingsConfigDict(env_file=".env", extra="allow")

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"


class ClientSettings(BaseSettings):
    """Data access layer configuration, read from ``WELLNESS_*`` variables.

    Attributes:
        API_BASE_URL: Base URL of the journal service.
        API_CANDIDATE_URLS: Optional list of base URLs probed in order. When
            empty, ``API_BASE_URL`` is used as is.
        REQUEST_TIMEOUT: Seconds a remote call may take before the local
            store is used instead.
        STORAGE_PATH: JSON file backing the local store.
        USE_LOCAL_STORAGE: Skip the remote service entirely.
        DEFAULT_USER_ID: User id persisted on first use.
    """

    API_BASE_URL: str = "http://localhost:8000"
    API_CANDIDATE_URLS: List[str] = []
    REQUEST_TIMEOUT: float = 10.0
    STORAGE_PATH: str = "~/.wellness/storage.json"
    USE_LOCAL_STORAGE: bool = False
    DEFAULT_USER_ID: int = 1

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="WELLNESS_", extra="allow"
    )


@lru_cache()
def get_settings() -> Settings:
    """Return cached service settings.

    The settings object is cached to prevent reloading environment
    variables multiple times during application lifetime.
    """

    return Settings()


@lru_cache()
def get_client_settings() -> ClientSettings:
    """Return cached client settings."""

    return ClientSettings()
