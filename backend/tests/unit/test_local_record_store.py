"""Unit tests for the SQLAlchemy local record store (temporary SQLite file)."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from notesync.application.services import EventBroadcaster
from notesync.domain.entities import Record
from notesync.domain.exceptions import EntityNotFoundError, LocalStorageError
from notesync.infrastructure.database.repositories import SQLAlchemyLocalRecordStore


T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _note(record_id: str, owner: str = "u1", **fields) -> Record:
    return Record(
        owner_id=owner,
        table="notes",
        fields=fields or {"preview_text": record_id},
        id=record_id,
        created_at=T0,
        updated_at=T0,
    )


@pytest.fixture
def store(session_factory) -> SQLAlchemyLocalRecordStore:
    return SQLAlchemyLocalRecordStore(session_factory)


@pytest.mark.asyncio
async def test_put_then_get_round_trips_timezones(store):
    await store.put(_note("n1"))
    loaded = await store.get("n1")

    assert loaded is not None
    assert loaded.created_at == T0
    assert loaded.updated_at.tzinfo is not None
    assert loaded.fields == {"preview_text": "n1"}


@pytest.mark.asyncio
async def test_put_replaces_existing_value(store):
    await store.put(_note("n1"))
    await store.put(_note("n1", preview_text="changed"))

    loaded = await store.get("n1")
    assert loaded.fields == {"preview_text": "changed"}


@pytest.mark.asyncio
async def test_list_by_owner_excludes_deleted_and_other_owners(store):
    await store.put(_note("n1"))
    await store.put(_note("n2"))
    await store.put(_note("n3", owner="u2"))
    await store.soft_delete("n2")

    records = await store.list_by_owner("u1")
    assert [r.id for r in records] == ["n1"]


@pytest.mark.asyncio
async def test_list_unsynced_includes_tombstones(store):
    synced = _note("n1")
    synced.synced = True
    await store.put(synced)
    await store.put(_note("n2"))
    await store.soft_delete("n1")

    ids = {r.id for r in await store.list_unsynced("u1")}
    assert ids == {"n1", "n2"}


@pytest.mark.asyncio
async def test_soft_delete_missing_record_raises(store):
    with pytest.raises(EntityNotFoundError):
        await store.soft_delete("missing")


@pytest.mark.asyncio
async def test_mark_synced_skips_records_edited_after_the_push(store):
    record = _note("n1")
    await store.put(record)

    record.update({"preview_text": "newer"}, at=T0 + timedelta(seconds=5))
    await store.put(record)

    assert await store.mark_synced("n1", up_to=T0) is False
    assert (await store.get("n1")).synced is False

    assert await store.mark_synced("n1", up_to=T0 + timedelta(seconds=5)) is True
    assert (await store.get("n1")).synced is True


@pytest.mark.asyncio
async def test_unserialisable_fields_raise_local_storage_error(store):
    bad = _note("n1")
    bad.fields = {"blob": object()}

    with pytest.raises(LocalStorageError):
        await store.put(bad)


@pytest.mark.asyncio
async def test_reads_without_schema_raise_local_storage_error(store, drop_schema):
    await drop_schema()

    with pytest.raises(LocalStorageError):
        await store.get("n1")
    with pytest.raises(LocalStorageError):
        await store.list_by_owner("u1")
    with pytest.raises(LocalStorageError) as excinfo:
        await store.list_unsynced("u1")
    assert excinfo.value.operation == "list_unsynced"


@pytest.mark.asyncio
async def test_delete_owner_data_only_touches_that_owner(store):
    await store.put(_note("n1"))
    await store.put(_note("n2", owner="u2"))

    assert await store.delete_owner_data("u1") == 1
    assert await store.get("n1") is None
    assert await store.get("n2") is not None


@pytest.mark.asyncio
async def test_changes_are_published_on_owner_topic(session_factory):
    broadcaster = EventBroadcaster()
    store = SQLAlchemyLocalRecordStore(session_factory, broadcaster)
    events = broadcaster.subscribe("u1")

    async def first_event():
        return await events.__anext__()

    # Subscription registers on first iteration.
    waiter = asyncio.create_task(first_event())
    await asyncio.sleep(0)
    assert broadcaster.subscriber_count == 1

    await store.put(_note("n1"))
    event = await asyncio.wait_for(waiter, timeout=1)

    assert event.type == "record_changed"
    assert event.data == {"record_id": "n1", "table": "notes", "change": "upserted"}
    await events.aclose()
