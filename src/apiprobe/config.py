"""apiprobe configuration with sensible defaults for local use."""

from enum import StrEnum
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_MOCK_STORE_PATH = ".apiprobe/records.json"


class RecordStoreBackend(StrEnum):
    """Which record store implementation to build at startup."""

    MEMORY = "memory"
    REDIS = "redis"


class Settings(BaseSettings):
    """
    apiprobe configuration.

    All settings can be overridden via environment variables with APIPROBE_ prefix.
    Defaults need no configuration: requests are logged to a JSON file under
    the working directory so separate CLI runs share one history.
    """

    model_config = SettingsConfigDict(
        env_prefix="APIPROBE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False
    log_format: Literal["text", "json"] = "text"

    # Request execution
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    follow_redirects: bool = True

    # Record store
    record_store: RecordStoreBackend = RecordStoreBackend.MEMORY
    redis_url: str | None = None
    # JSON file backing the memory store; an empty value keeps records in process only.
    mock_store_path: str | None = DEFAULT_MOCK_STORE_PATH

    # Auth and analytics defaults
    default_api_key_name: str = "X-API-Key"
    top_endpoints_limit: int = Field(default=5, ge=1)
    recent_requests_limit: int = Field(default=50, ge=1)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
