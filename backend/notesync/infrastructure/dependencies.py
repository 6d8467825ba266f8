"""FastAPI dependency injection — hands the process-wide sync runtime to endpoints."""

from fastapi import Depends, HTTPException, Request, status

from notesync.application.services import (
    ConnectivityMonitor,
    EventBroadcaster,
    RecordFacade,
)
from notesync.infrastructure.runtime import SyncRuntime


def get_runtime(request: Request) -> SyncRuntime:
    """The runtime built in the application lifespan."""
    runtime: SyncRuntime | None = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Sync runtime is not ready",
        )
    return runtime


def get_owner_id(runtime: SyncRuntime = Depends(get_runtime)) -> str:
    """The signed-in owner; 401 when nobody is signed in."""
    if not runtime.session.owner_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in")
    return runtime.session.owner_id


def get_record_facade(runtime: SyncRuntime = Depends(get_runtime)) -> RecordFacade:
    return runtime.facade


def get_connectivity_monitor(runtime: SyncRuntime = Depends(get_runtime)) -> ConnectivityMonitor:
    return runtime.monitor


def get_broadcaster(runtime: SyncRuntime = Depends(get_runtime)) -> EventBroadcaster:
    return runtime.broadcaster
