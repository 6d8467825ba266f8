"""Record CRUD endpoints — every call goes through the local-first facade."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationError

from notesync.application.schemas import (
    TABLE_SCHEMAS,
    RecordCreate,
    RecordResponse,
    RecordUpdate,
)
from notesync.application.services import LocalWriteResult, RecordFacade
from notesync.domain.entities import Record
from notesync.domain.exceptions import (
    EntityNotFoundError,
    LocalStorageError,
    RecordConflictError,
    UnsupportedTableError,
)
from notesync.infrastructure.dependencies import get_owner_id, get_record_facade

router = APIRouter(prefix="/records", tags=["Records"])


def _to_response(record: Record, queued: bool | None = None) -> RecordResponse:
    response = RecordResponse.model_validate(record, from_attributes=True)
    response.queued = queued
    return response


def _validate_fields(
    table: str, fields: dict[str, Any], existing: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Validate ``fields`` against the table schema and return JSON-ready values.

    With ``existing``, the merged record is validated and only the changed
    keys are returned.
    """
    schema = TABLE_SCHEMAS.get(table)
    if schema is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(UnsupportedTableError(table)))
    try:
        validated = schema.model_validate({**(existing or {}), **fields})
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False),
        )
    data = validated.model_dump(mode="json")
    if existing is not None:
        return {k: data[k] for k in fields if k in data}
    return data


def _storage_failure(e: LocalStorageError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_507_INSUFFICIENT_STORAGE, detail=str(e))


def _write_response(result: LocalWriteResult) -> RecordResponse:
    return _to_response(result.record, queued=result.queued)


@router.get("", response_model=list[RecordResponse])
async def list_records(
    table: str | None = Query(None, description="Filter by table (notes, training_completions)"),
    owner_id: str = Depends(get_owner_id),
    facade: RecordFacade = Depends(get_record_facade),
) -> list[RecordResponse]:
    """List the signed-in owner's live records, newest first."""
    try:
        records = await facade.list_records(owner_id, table)
    except UnsupportedTableError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return [_to_response(r) for r in records]


@router.get("/{record_id}", response_model=RecordResponse)
async def get_record(
    record_id: str,
    owner_id: str = Depends(get_owner_id),
    facade: RecordFacade = Depends(get_record_facade),
) -> RecordResponse:
    """Retrieve a single live record by ID."""
    record = await facade.get_record(record_id)
    if record is None or record.owner_id != owner_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found")
    return _to_response(record)


@router.post("", response_model=RecordResponse, status_code=status.HTTP_201_CREATED)
async def create_record(
    data: RecordCreate,
    owner_id: str = Depends(get_owner_id),
    facade: RecordFacade = Depends(get_record_facade),
) -> RecordResponse:
    """Save a record locally and queue it for the remote store."""
    fields = _validate_fields(data.table, data.fields)
    try:
        result = await facade.create_record(owner_id, data.table, fields, record_id=data.id)
    except UnsupportedTableError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except RecordConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except LocalStorageError as e:
        raise _storage_failure(e)
    return _write_response(result)


@router.patch("/{record_id}", response_model=RecordResponse)
async def update_record(
    record_id: str,
    data: RecordUpdate,
    owner_id: str = Depends(get_owner_id),
    facade: RecordFacade = Depends(get_record_facade),
) -> RecordResponse:
    """Change some fields of a record."""
    record = await facade.get_record(record_id)
    if record is None or record.owner_id != owner_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found")

    fields = _validate_fields(record.table, data.fields, existing=record.fields)
    try:
        result = await facade.update_record(record_id, fields)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except LocalStorageError as e:
        raise _storage_failure(e)
    return _write_response(result)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(
    record_id: str,
    owner_id: str = Depends(get_owner_id),
    facade: RecordFacade = Depends(get_record_facade),
) -> None:
    """Soft-delete a record."""
    record = await facade.get_record(record_id)
    if record is None or record.owner_id != owner_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found")
    try:
        await facade.delete_record(record_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except LocalStorageError as e:
        raise _storage_failure(e)
