"""Process health endpoint. Answers even before the sync runtime is built."""

from fastapi import APIRouter, Request

from notesync.config import get_settings

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Process status plus whether the sync runtime is up and believes it is online."""
    settings = get_settings()
    runtime = getattr(request.app.state, "runtime", None)
    return {
        "status": "healthy",
        "service": settings.app_title,
        "version": settings.app_version,
        "environment": settings.app_env,
        "sync_ready": runtime is not None,
        "online": bool(runtime and runtime.connectivity.is_online),
    }
