"""Sync endpoints — manual passes, queue status, connectivity reports and the event stream."""

from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from notesync.application.schemas import (
    ConnectivityUpdate,
    SyncResultResponse,
    SyncStatusResponse,
)
from notesync.application.services import ConnectivityMonitor, EventBroadcaster
from notesync.domain.entities import MutationStatus
from notesync.infrastructure.dependencies import (
    get_broadcaster,
    get_connectivity_monitor,
    get_owner_id,
    get_runtime,
)
from notesync.infrastructure.runtime import SyncRuntime

router = APIRouter(prefix="/sync", tags=["Sync"])


@router.post("", response_model=SyncResultResponse)
async def run_sync(
    owner_id: str = Depends(get_owner_id),
    monitor: ConnectivityMonitor = Depends(get_connectivity_monitor),
) -> SyncResultResponse:
    """Run a reconciliation pass now (or join the one in flight)."""
    result = await monitor.sync_now()
    if result is None:
        return SyncResultResponse(processed=0, failed=0, deferred=True)
    return SyncResultResponse(**result.as_signal())


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(
    owner_id: str = Depends(get_owner_id),
    runtime: SyncRuntime = Depends(get_runtime),
) -> SyncStatusResponse:
    """Queue counts by status plus the current connectivity flag."""
    counts = await runtime.queue.count_by_status(owner_id)
    return SyncStatusResponse(
        owner_id=owner_id,
        online=runtime.connectivity.is_online,
        pending=counts[MutationStatus.PENDING.value],
        synced=counts[MutationStatus.SYNCED.value],
        failed=counts[MutationStatus.FAILED.value],
        syncing=runtime.monitor.is_running,
    )


@router.post("/connectivity", response_model=SyncStatusResponse)
async def report_connectivity(
    data: ConnectivityUpdate,
    owner_id: str = Depends(get_owner_id),
    runtime: SyncRuntime = Depends(get_runtime),
) -> SyncStatusResponse:
    """Report an OS/browser online or offline transition.

    Going online schedules one reconciliation pass; the response does not
    wait for it.
    """
    runtime.monitor.set_online(data.online)
    return await sync_status(owner_id=owner_id, runtime=runtime)


# ── SSE Stream ───────────────────────────────────────────────────────


@router.get("/events")
async def sync_event_stream(
    owner_id: str = Depends(get_owner_id),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
) -> StreamingResponse:
    """SSE endpoint for sync results and local record changes.

    Clients connect via EventSource and receive ``sync_complete`` and
    ``record_changed`` events for the signed-in owner.
    """

    async def stream() -> AsyncIterator[str]:
        async for event in broadcaster.subscribe(owner_id):
            yield event.to_sse()

    return StreamingResponse(
        stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
