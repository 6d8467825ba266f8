"""Session endpoints — sign in to start syncing, sign out to stop and wipe."""

import logging

from fastapi import APIRouter, Depends, status

from notesync.application.schemas import SessionCreate, SessionResponse
from notesync.infrastructure.dependencies import get_runtime
from notesync.infrastructure.runtime import SyncRuntime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session", tags=["Session"])


def _describe(runtime: SyncRuntime) -> SessionResponse:
    return SessionResponse(
        owner_id=runtime.session.owner_id,
        authenticated=runtime.session.is_authenticated,
        online=runtime.connectivity.is_online,
    )


@router.get("", response_model=SessionResponse)
async def get_session(runtime: SyncRuntime = Depends(get_runtime)) -> SessionResponse:
    return _describe(runtime)


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def sign_in(
    data: SessionCreate,
    runtime: SyncRuntime = Depends(get_runtime),
) -> SessionResponse:
    """Sign in, merge local and remote records, and start background sync."""
    reports = await runtime.sign_in(data.owner_id, data.access_token)
    for report in reports:
        logger.info(
            "Start-up merge %s: pushed=%d pulled=%d conflicts=%d skipped=%s",
            report.table, report.pushed, report.pulled, len(report.conflicts), report.skipped,
        )
    return _describe(runtime)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(runtime: SyncRuntime = Depends(get_runtime)) -> None:
    """Stop syncing and remove the signed-in owner's local records."""
    await runtime.sign_out(wipe=True)
