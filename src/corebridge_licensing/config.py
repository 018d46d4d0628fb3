"""CoreBridge licensing configuration using pydantic-settings with YAML support."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class ServerConfig(BaseModel):
    """HTTP server settings."""

    host: str = "0.0.0.0"
    port: int = 3008
    workers: int = 1


class StorageConfig(BaseModel):
    """Database location.

    ``database_url`` takes precedence over the SQLite file when set.
    """

    data_dir: str = "/data"
    sqlite_path: str = ""
    database_url: str = ""
    migrations_dir: str = ""

    def model_post_init(self, __context: Any) -> None:
        if not self.sqlite_path:
            self.sqlite_path = str(Path(self.data_dir) / "licensing.db")

    @property
    def url(self) -> str:
        if self.database_url:
            url = self.database_url
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql://", 1)
            if url.startswith("postgresql://"):
                url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
            return url
        return f"sqlite+aiosqlite:///{self.sqlite_path}"


class LicenseTermsConfig(BaseModel):
    """License key format and validity periods."""

    key_prefix: str = "CB"
    key_length: int = 20
    key_generation_attempts: int = 5
    validity_days: dict[str, int] = Field(
        default_factory=lambda: {"1-year": 365, "3-year": 1095, "5-year": 1825}
    )
    perpetual_expiry: datetime = datetime(2099, 12, 31)
    default_max_activations: int = 1


class ValidationConfig(BaseModel):
    """Validation verdict and transaction retry settings."""

    warning_thresholds: list[int] = Field(default_factory=lambda: [90, 60, 45, 30, 15, 7])
    transaction_attempts: int = 3
    retry_backoff_seconds: float = 0.05


class ExpirationConfig(BaseModel):
    """Daily expiration scan."""

    scan_enabled: bool = True
    thresholds: list[int] = Field(default_factory=lambda: [90, 60, 45, 30, 15, 7, 3, 1])
    scan_hour: int = 9
    scan_minute: int = 0


class NotificationConfig(BaseModel):
    """Where expiration notices are delivered."""

    log_enabled: bool = True
    webhook_urls: list[str] = Field(default_factory=list)


class CatalogConfig(BaseModel):
    """Upstream plugin catalog synchronization."""

    core_api_url: str = "http://localhost:4001"
    sync_enabled: bool = False
    sync_interval_seconds: float = 3600
    timeout_seconds: float = 10.0


class Settings(BaseSettings):
    """Root configuration for the licensing service."""

    model_config = SettingsConfigDict(
        env_prefix="COREBRIDGE_",
        env_nested_delimiter="__",
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    terms: LicenseTermsConfig = Field(default_factory=LicenseTermsConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    expiration: ExpirationConfig = Field(default_factory=ExpirationConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)

    debug: bool = False

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment wins over values passed in from the YAML file.
        return env_settings, init_settings, dotenv_settings, file_secret_settings


def load_config(config_path: str | Path | None = None) -> Settings:
    """Load configuration from YAML file and environment variables.

    Environment variables override YAML values. YAML overrides defaults.
    """
    yaml_data: dict[str, Any] = {}

    if config_path is None:
        candidates = [
            Path("corebridge-licensing.yaml"),
            Path("corebridge-licensing.yml"),
            Path("/etc/corebridge/licensing.yaml"),
        ]
        for candidate in candidates:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                yaml_data = yaml.safe_load(f) or {}

    return Settings(**yaml_data)
