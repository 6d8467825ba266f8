"""V1 API router — aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from notesync.presentation.api.v1.endpoints.health import router as health_router
from notesync.presentation.api.v1.endpoints.records import router as records_router
from notesync.presentation.api.v1.endpoints.session import router as session_router
from notesync.presentation.api.v1.endpoints.sync import router as sync_router

router = APIRouter(prefix="/v1")
router.include_router(health_router)
router.include_router(session_router)
router.include_router(records_router)
router.include_router(sync_router)
