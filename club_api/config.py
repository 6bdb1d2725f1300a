"""
Application configuration using Pydantic Settings.
Manages all environment variables and settings.
"""
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator


class Environment(str, Enum):
    """Application environment modes."""
    DEV = "DEV"
    PRODUCTION = "PRODUCTION"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: Environment = Field(
        default=Environment.DEV,
        description="Application environment: DEV or PRODUCTION"
    )

    # Application
    app_name: str = Field(default="Taiko Club API")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    @model_validator(mode='after')
    def set_debug_from_environment(self):
        """Set debug mode based on environment if not explicitly set via environment variable."""
        import os
        if 'DEBUG' not in os.environ:
            self.debug = self.environment == Environment.DEV
        return self

    @property
    def is_dev(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEV

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION

    # Song catalog (static JSON document)
    songs_file: Path = Field(default=Path("data/songs.json"))
    song_cache_ttl_seconds: float = Field(
        default=300.0,
        description="How long a loaded song catalog is served before the file is read again",
    )

    # Monthly challenge files: <challenge_data_dir>/YYYY-MM.json
    challenge_data_dir: Path = Field(default=Path("data/challenge-data"))

    # Pagination defaults shared by the list endpoints
    default_page_size: int = Field(default=20)

    # Object Storage (Swift API, token auth)
    storage_iam_user: str = Field(default="", description="API user name")
    storage_iam_password: str = Field(default="", description="API password")
    storage_tenant_id: str = Field(default="", description="Tenant ID (AUTH_{tenant_id})")
    storage_auth_url: str = Field(
        default="https://api-identity-infrastructure.nhncloudservice.com/v2.0",
        description="Identity endpoint used to issue storage tokens",
    )
    storage_url: str = Field(
        default="https://api-storage.nhncloudservice.com/v1",
        description="Object Storage API endpoint (without account)",
    )
    storage_container: str = Field(default="taiko-club")
    storage_public_url: str = Field(
        default="",
        description="Public base URL of the container, used to build image URLs. Empty means storage_url/account/container.",
    )
    storage_photo_prefix: str = Field(default="photos/")
    storage_list_limit: int = Field(default=1000)
    storage_fetch_timeout_seconds: float = Field(default=10.0)
    storage_fetch_concurrency: int = Field(default=16, ge=1, description="Metadata downloads in flight per listing")

    @field_validator("storage_photo_prefix", mode="before")
    @classmethod
    def coerce_photo_prefix(cls, v: object) -> str:
        if v is None or not str(v).strip():
            return "photos/"
        value = str(v).strip()
        return value if value.endswith("/") else f"{value}/"

    # Upload
    upload_api_key: str = Field(default="", description="Shared secret expected in X-API-Key")
    upload_max_file_size: int = Field(default=10 * 1024 * 1024)
    rate_limit_enabled: bool = Field(default=True)
    upload_rate_limit_per_minute: int = Field(default=10)

    # Logging
    log_dir: str = Field(
        default="",
        description="Directory for NDJSON log files. Empty disables file logging.",
    )
    slow_request_threshold_ms: float = Field(default=3000.0)

    # Prometheus
    node_name: str = Field(default="", description="Node/Pod identifier for Prometheus labels")
    instance_ip: str = Field(default="", description="Instance identifier for logs (hostname when empty)")

    class Config:
        env_file = None
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Using lru_cache to avoid reading the environment on every request.
    """
    return Settings()
