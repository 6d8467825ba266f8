"""Pydantic DTOs (Data Transfer Objects) for records and sync state."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class NoteFields(BaseModel):
    """Domain columns of a saved clinical note."""

    timestamp: datetime | None = None
    display_name: str | None = None
    rank: str | None = None
    uic: str | None = None
    clinic_id: str | None = None
    algorithm_reference: str | None = None
    hpi_encoded: str | None = None
    symptom_icon: str | None = None
    symptom_text: str | None = Field(None, examples=["fever"])
    disposition_type: str | None = None
    disposition_text: str | None = None
    preview_text: str | None = None
    is_imported: bool = False
    source_device: str | None = None


class TrainingCompletionFields(BaseModel):
    """Domain columns of a completed training item."""

    training_item_id: str = Field(..., min_length=1, examples=["airway-1"])
    completed: bool = True
    completed_at: datetime | None = None


# Table name → field schema used to validate writes
TABLE_SCHEMAS: dict[str, type[BaseModel]] = {
    "notes": NoteFields,
    "training_completions": TrainingCompletionFields,
}


class RecordCreate(BaseModel):
    """Schema for creating a record — ``fields`` is validated per table."""

    table: str = Field(..., examples=["notes"])
    fields: dict[str, Any]
    id: str | None = Field(None, description="Client-generated id (a UUID is assigned if omitted)")


class RecordUpdate(BaseModel):
    """Schema for updating a record — only the given fields change."""

    fields: dict[str, Any] = Field(..., min_length=1)


class RecordResponse(BaseModel):
    """Schema returned to the client."""

    id: str
    table: str
    owner_id: str
    fields: dict[str, Any]
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None
    synced: bool
    queued: bool | None = None

    model_config = {"from_attributes": True}


class SyncResultResponse(BaseModel):
    processed: int
    failed: int
    skipped: int = 0
    deferred: bool = False


class SyncStatusResponse(BaseModel):
    """Queue counts and connectivity for the signed-in owner."""

    owner_id: str
    online: bool
    pending: int
    synced: int
    failed: int
    syncing: bool


class ConnectivityUpdate(BaseModel):
    online: bool


class SessionCreate(BaseModel):
    """Sign-in payload: the owner id and bearer token for remote calls."""

    owner_id: str = Field(..., min_length=1)
    access_token: str = Field(..., min_length=1)


class SessionResponse(BaseModel):
    owner_id: str | None
    authenticated: bool
    online: bool
