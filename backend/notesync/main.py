"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from pathlib import Path

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import make_url

from notesync.config import get_settings
from notesync.infrastructure.database import Base, engine
from notesync.infrastructure.database.session import async_session_factory
from notesync.infrastructure.logging.log_config import setup_logging
from notesync.infrastructure.runtime import build_runtime
from notesync.presentation.api.router import router as api_router

logger = logging.getLogger(__name__)


def _ensure_database_dir(database_url: str) -> None:
    """Create the directory holding a file-based SQLite database."""
    url = make_url(database_url)
    if not url.drivername.startswith("sqlite") or not url.database:
        return
    if url.database == ":memory:":
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan — create tables, build the sync runtime, start syncing."""
    settings = get_settings()
    setup_logging()

    # 1. Local database
    _ensure_database_dir(settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # 2. Sync runtime (shared HTTP client for the remote gateway)
    http_client = httpx.AsyncClient(timeout=settings.remote_timeout_seconds)
    runtime = build_runtime(settings, async_session_factory, http_client=http_client)
    app.state.runtime = runtime

    # 3. Resume the configured session, if any
    if runtime.session.owner_id:
        try:
            await runtime.start()
        except Exception:
            logger.exception("Failed to start sync runtime — continuing offline")

    yield

    # Shutdown
    await runtime.close()
    await engine.dispose()


def create_app() -> FastAPI:
    """Factory function that builds and configures the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount API routes
    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "notesync.main:app",
        host="0.0.0.0",
        port=8020,
        reload=True,
    )
