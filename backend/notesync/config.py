import json
import logging
from pathlib import Path

from pydantic_settings import BaseSettings
from functools import lru_cache

_config_logger = logging.getLogger(__name__)

_SETTINGS_FILE = Path("data/settings.json")
_BACKEND_DIR = Path(__file__).resolve().parents[1]
_ENV_FILES = (
    _BACKEND_DIR / ".env",
    ".env",
)
# Keys that may be overridden at runtime from data/settings.json
_RUNTIME_KEYS = frozenset({
    "remote_url",
    "remote_timeout_seconds",
    "sync_max_attempts",
    "queue_retention_days",
    "direct_writes_enabled",
})


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_title: str = "Notesync API"
    app_version: str = "0.1.0"
    app_env: str = "development"
    database_url: str = "sqlite:///data/notesync.db"
    cors_origins: list[str] = ["http://localhost:5173"]

    # Remote store of record (PostgREST / Supabase REST)
    remote_url: str = "http://localhost:54321"
    remote_api_key: str = ""
    remote_timeout_seconds: float = 10.0

    # Signed-in session restored at startup (optional)
    owner_id: str = ""
    access_token: str = ""

    # Sync engine
    sync_tables: list[str] = ["notes", "training_completions"]
    sync_max_attempts: int = 5
    queue_retention_days: int = 0            # 0 keeps synced queue entries forever
    direct_writes_enabled: bool = True

    # Per-category log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = "INFO"                  # Root / app-wide
    log_level_sql: str = "WARNING"           # sqlalchemy.engine SQL queries
    log_level_http: str = "WARNING"          # httpx / httpcore outbound HTTP
    log_level_uvicorn: str = "INFO"          # uvicorn.access / uvicorn.error
    log_level_sync: str = "INFO"             # Reconciler, monitor, facade
    log_level_remote: str = "INFO"           # Remote gateway adapter

    model_config = {
        "env_file": _ENV_FILES,
        "env_file_encoding": "utf-8",
    }

    def model_post_init(self, __context: object) -> None:
        """Merge runtime overrides from data/settings.json into sync settings."""
        if _SETTINGS_FILE.exists():
            try:
                overrides = json.loads(_SETTINGS_FILE.read_text("utf-8"))
                for key in _RUNTIME_KEYS:
                    if key not in overrides:
                        continue
                    current = getattr(self, key)
                    value = overrides[key]
                    if isinstance(value, type(current)) or (
                        isinstance(current, float) and isinstance(value, int)
                    ):
                        object.__setattr__(self, key, type(current)(value))
            except Exception as exc:
                _config_logger.warning("Could not load settings overrides: %s", exc)


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance — reads .env once."""
    return Settings()
