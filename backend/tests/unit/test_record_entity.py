"""Unit tests for the Record and MutationQueueEntry domain entities."""

from datetime import datetime, timedelta, timezone

from notesync.domain.entities import (
    MutationAction,
    MutationQueueEntry,
    MutationStatus,
    Record,
    parse_timestamp,
)


T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _note(**kwargs) -> Record:
    return Record(owner_id="u1", table="notes", fields={"preview_text": "fever"}, **kwargs)


def test_to_remote_uses_wire_column_names():
    record = _note(id="n1", created_at=T0, updated_at=T0)
    row = record.to_remote()

    assert row["id"] == "n1"
    assert row["user_id"] == "u1"
    assert row["preview_text"] == "fever"
    assert row["updated_at"] == T0.isoformat()
    assert row["deleted_at"] is None
    assert "synced" not in row


def test_from_remote_splits_envelope_and_fields():
    row = {
        "id": "n1",
        "user_id": "u1",
        "preview_text": "fever",
        "created_at": "2024-05-01T12:00:00Z",
        "updated_at": "2024-05-01T12:00:00+00:00",
        "deleted_at": None,
    }
    record = Record.from_remote("notes", row)

    assert record.fields == {"preview_text": "fever"}
    assert record.created_at == T0
    assert record.updated_at == T0
    assert record.synced is True


def test_parse_timestamp_treats_naive_values_as_utc():
    assert parse_timestamp("2024-05-01T12:00:00") == T0
    assert parse_timestamp(None) is None


def test_update_never_moves_updated_at_backwards():
    record = _note(created_at=T0, updated_at=T0, synced=True)
    record.update({"preview_text": "cough"}, at=T0 - timedelta(seconds=5))

    assert record.updated_at == T0
    assert record.fields["preview_text"] == "cough"
    assert record.synced is False


def test_mark_deleted_sets_tombstone():
    record = _note(created_at=T0, updated_at=T0, synced=True)
    record.mark_deleted(T0 + timedelta(seconds=1))

    assert record.is_deleted
    assert record.deleted_at == record.updated_at
    assert record.synced is False


def test_copy_does_not_share_fields():
    record = _note()
    clone = record.copy(synced=True)
    clone.fields["preview_text"] = "changed"

    assert record.fields["preview_text"] == "fever"
    assert clone.synced is True


def test_terminal_entries_ignore_further_transitions():
    entry = MutationQueueEntry(
        owner_id="u1",
        action=MutationAction.CREATE,
        target_table="notes",
        target_record_id="n1",
        payload={},
    )
    assert entry.mark_synced(T0) is True
    assert entry.mark_failed("boom") is False
    assert entry.mark_synced() is False
    assert entry.status is MutationStatus.SYNCED
    assert entry.attempts == 0


def test_failed_entry_records_attempt_and_can_be_requeued():
    entry = MutationQueueEntry(
        owner_id="u1",
        action=MutationAction.UPDATE,
        target_table="notes",
        target_record_id="n1",
        payload={},
    )
    assert entry.mark_failed("x" * 600) is True
    assert entry.attempts == 1
    assert len(entry.last_error) == 500

    assert entry.mark_requeued() is True
    assert entry.status is MutationStatus.PENDING
