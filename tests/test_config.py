"""Tests for the configuration system."""

from __future__ import annotations

import os
import tempfile
from datetime import datetime

import yaml

from corebridge_licensing.config import Settings, load_config


def test_default_settings():
    settings = Settings()
    assert settings.server.host == "0.0.0.0"
    assert settings.server.port == 3008
    assert settings.storage.data_dir == "/data"
    assert settings.terms.key_prefix == "CB"
    assert settings.terms.validity_days == {"1-year": 365, "3-year": 1095, "5-year": 1825}
    assert settings.terms.perpetual_expiry == datetime(2099, 12, 31)
    assert settings.expiration.thresholds == [90, 60, 45, 30, 15, 7, 3, 1]
    assert settings.catalog.core_api_url == "http://localhost:4001"
    assert settings.debug is False


def test_storage_paths_auto_populated():
    settings = Settings()
    assert settings.storage.sqlite_path == "/data/licensing.db"
    assert settings.storage.url == "sqlite+aiosqlite:////data/licensing.db"


def test_custom_storage_dir():
    settings = Settings(storage={"data_dir": "/custom/path"})
    assert settings.storage.sqlite_path == "/custom/path/licensing.db"


def test_postgres_url_uses_asyncpg():
    settings = Settings(storage={"database_url": "postgres://u:p@db:5432/licensing"})
    assert settings.storage.url == "postgresql+asyncpg://u:p@db:5432/licensing"

    settings = Settings(storage={"database_url": "postgresql://u:p@db/licensing"})
    assert settings.storage.url == "postgresql+asyncpg://u:p@db/licensing"


def test_load_from_yaml():
    config = {
        "server": {"port": 8080},
        "expiration": {"scan_hour": 6, "thresholds": [30, 7]},
        "notifications": {"webhook_urls": ["https://example.com/hook"]},
        "debug": True,
    }
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(config, f)
        f.flush()
        settings = load_config(f.name)

    os.unlink(f.name)
    assert settings.server.port == 8080
    assert settings.expiration.scan_hour == 6
    assert settings.expiration.thresholds == [30, 7]
    assert settings.notifications.webhook_urls == ["https://example.com/hook"]
    assert settings.debug is True


def test_env_var_override(monkeypatch):
    monkeypatch.setenv("COREBRIDGE_SERVER__PORT", "9000")
    monkeypatch.setenv("COREBRIDGE_DEBUG", "true")
    settings = Settings()
    assert settings.server.port == 9000
    assert settings.debug is True


def test_env_overrides_yaml(monkeypatch, tmp_path):
    path = tmp_path / "licensing.yaml"
    path.write_text(yaml.dump({"server": {"port": 8080, "host": "127.0.0.1"}}))
    monkeypatch.setenv("COREBRIDGE_SERVER__PORT", "9000")

    settings = load_config(path)
    assert settings.server.port == 9000
    assert settings.server.host == "127.0.0.1"


def test_missing_config_file_uses_defaults(tmp_path):
    settings = load_config(tmp_path / "nope.yaml")
    assert settings.server.port == 3008
