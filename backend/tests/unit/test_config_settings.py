"""Unit tests for application settings configuration."""

import json
from pathlib import Path

import notesync.config as config_module
from notesync.config import Settings


def test_settings_uses_backend_env_file_independent_of_cwd():
    """Settings should always include backend/.env as an env source."""
    env_files = Settings.model_config.get("env_file")
    assert env_files is not None

    normalized = {str(Path(item)) for item in env_files}
    expected_backend_env = str(Path(__file__).resolve().parents[2] / ".env")

    assert expected_backend_env in normalized
    assert str(Path(".env")) in normalized


def test_runtime_overrides_apply_only_to_sync_keys(tmp_path, monkeypatch):
    overrides = tmp_path / "settings.json"
    overrides.write_text(json.dumps({
        "sync_max_attempts": 9,
        "remote_timeout_seconds": 3,
        "database_url": "sqlite:///elsewhere.db",
        "direct_writes_enabled": "no",
    }))
    monkeypatch.setattr(config_module, "_SETTINGS_FILE", overrides)

    settings = Settings(_env_file=None)

    assert settings.sync_max_attempts == 9
    assert settings.remote_timeout_seconds == 3.0
    assert settings.database_url == "sqlite:///data/notesync.db"
    assert settings.direct_writes_enabled is True


def test_unreadable_overrides_are_ignored(tmp_path, monkeypatch):
    overrides = tmp_path / "settings.json"
    overrides.write_text("{not json")
    monkeypatch.setattr(config_module, "_SETTINGS_FILE", overrides)

    settings = Settings(_env_file=None)
    assert settings.sync_max_attempts == 5
