"""Unit tests for the SQLAlchemy mutation queue."""

from datetime import datetime, timedelta, timezone

import pytest

from notesync.domain.entities import MutationAction, MutationStatus
from notesync.domain.exceptions import QueueError
from notesync.infrastructure.database.repositories import SQLAlchemyMutationQueue


T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def queue(session_factory) -> SQLAlchemyMutationQueue:
    # Frozen clock: every entry gets the same wall-clock time.
    return SQLAlchemyMutationQueue(session_factory, clock=lambda: T0)


@pytest.mark.asyncio
async def test_enqueue_persists_pending_entry(queue):
    entry = await queue.enqueue("u1", MutationAction.CREATE, "notes", "n1", {"id": "n1"})

    loaded = await queue.get(entry.entry_id)
    assert loaded.status is MutationStatus.PENDING
    assert loaded.payload == {"id": "n1"}
    assert loaded.created_at == T0


@pytest.mark.asyncio
async def test_list_pending_keeps_enqueue_order_with_identical_clock(queue):
    first = await queue.enqueue("u1", MutationAction.CREATE, "notes", "n1", {})
    second = await queue.enqueue("u1", MutationAction.UPDATE, "notes", "n1", {})
    third = await queue.enqueue("u1", MutationAction.DELETE, "notes", "n1", {})
    await queue.enqueue("u2", MutationAction.CREATE, "notes", "other", {})

    pending = await queue.list_pending("u1")
    assert [e.entry_id for e in pending] == [first.entry_id, second.entry_id, third.entry_id]
    assert pending[0].created_at < pending[1].created_at < pending[2].created_at


@pytest.mark.asyncio
async def test_status_transitions_are_idempotent(queue):
    entry = await queue.enqueue("u1", MutationAction.CREATE, "notes", "n1", {})

    synced = await queue.mark_synced(entry.entry_id)
    assert synced.status is MutationStatus.SYNCED
    assert synced.synced_at is not None

    again = await queue.mark_failed(entry.entry_id, "late failure")
    assert again.status is MutationStatus.SYNCED
    assert again.attempts == 0
    assert await queue.list_pending("u1") == []


@pytest.mark.asyncio
async def test_marking_unknown_entry_returns_none(queue):
    assert await queue.mark_synced("missing") is None


@pytest.mark.asyncio
async def test_requeue_failed_respects_attempt_limit(queue):
    entry = await queue.enqueue("u1", MutationAction.UPDATE, "notes", "n1", {})

    await queue.mark_failed(entry.entry_id, "network")
    assert await queue.requeue_failed("u1", max_attempts=2) == 1
    await queue.mark_failed(entry.entry_id, "network")
    assert await queue.requeue_failed("u1", max_attempts=2) == 0

    loaded = await queue.get(entry.entry_id)
    assert loaded.status is MutationStatus.FAILED
    assert loaded.attempts == 2
    assert loaded.last_error == "network"


@pytest.mark.asyncio
async def test_outstanding_targets_and_counts(queue):
    a = await queue.enqueue("u1", MutationAction.CREATE, "notes", "n1", {})
    b = await queue.enqueue("u1", MutationAction.CREATE, "notes", "n2", {})
    await queue.enqueue("u1", MutationAction.CREATE, "notes", "n3", {})
    await queue.mark_synced(a.entry_id)
    await queue.mark_failed(b.entry_id, "rejected")

    assert await queue.list_outstanding_targets("u1") == {"n2", "n3"}
    assert await queue.count_by_status("u1") == {"pending": 1, "synced": 1, "failed": 1}


@pytest.mark.asyncio
async def test_purge_synced_removes_only_old_synced_entries(queue):
    done = await queue.enqueue("u1", MutationAction.CREATE, "notes", "n1", {})
    open_entry = await queue.enqueue("u1", MutationAction.CREATE, "notes", "n2", {})
    await queue.mark_synced(done.entry_id)

    future = datetime.now(timezone.utc) + timedelta(days=1)
    assert await queue.purge_synced("u1", older_than=future) == 1
    assert await queue.get(done.entry_id) is None
    assert await queue.get(open_entry.entry_id) is not None


@pytest.mark.asyncio
async def test_enqueue_failure_raises_queue_error(queue):
    with pytest.raises(QueueError):
        await queue.enqueue("u1", MutationAction.CREATE, "notes", "n1", {"blob": object()})
    assert await queue.list_pending("u1") == []


@pytest.mark.asyncio
async def test_reads_without_schema_raise_queue_error(queue, drop_schema):
    await drop_schema()

    with pytest.raises(QueueError) as excinfo:
        await queue.list_pending("u1")
    assert excinfo.value.operation == "list_pending"
    with pytest.raises(QueueError):
        await queue.list_outstanding_targets("u1")
    with pytest.raises(QueueError):
        await queue.get("e1")
    with pytest.raises(QueueError):
        await queue.count_by_status("u1")
