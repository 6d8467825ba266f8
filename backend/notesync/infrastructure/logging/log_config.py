"""Logging set-up for the API process.

Each ``log_level_*`` setting controls a group of loggers, so SQL echo or
outbound HTTP chatter can be turned up while debugging a sync problem
without flooding everything else.
"""

import logging
import sys

from notesync.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

# Settings field → loggers it controls
LOGGER_GROUPS: dict[str, tuple[str, ...]] = {
    "log_level_sql": ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite"),
    "log_level_http": ("httpx", "httpcore"),
    "log_level_uvicorn": ("uvicorn", "uvicorn.access", "uvicorn.error"),
    "log_level_sync": ("notesync.application.services", "SyncPass"),
    "log_level_remote": ("notesync.infrastructure.remote",),
}


def setup_logging(settings: Settings | None = None) -> dict[str, int]:
    """Apply root and per-group levels; returns the level set for each group.

    Safe to call more than once: a stderr handler is only installed when
    the root logger has none (uvicorn normally brings its own).
    """
    settings = settings or get_settings()

    root = logging.getLogger()
    root.setLevel(_parse_level(settings.log_level))
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(handler)

    applied: dict[str, int] = {}
    for field_name, logger_names in LOGGER_GROUPS.items():
        level = _parse_level(getattr(settings, field_name))
        for name in logger_names:
            logging.getLogger(name).setLevel(level)
        applied[field_name] = level

    logging.getLogger(__name__).debug(
        "Log levels: root=%s %s",
        settings.log_level,
        " ".join(f"{k[len('log_level_'):]}={logging.getLevelName(v)}" for k, v in applied.items()),
    )
    return applied


def _parse_level(raw: str) -> int:
    """Level name to logging constant; unknown names fall back to INFO."""
    level = logging.getLevelName(raw.strip().upper())
    return level if isinstance(level, int) else logging.INFO
