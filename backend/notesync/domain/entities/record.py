"""Domain entity — a locally held, remotely synced record (note, training completion)."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

# Columns carried by every remote row; everything else is a domain field.
_ENVELOPE_COLUMNS = frozenset({"id", "user_id", "created_at", "updated_at", "deleted_at"})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: datetime | str | None) -> datetime | None:
    """Parse an ISO-8601 string (or pass through a datetime) as an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class Record:
    """Core domain entity for a single synced row.

    ``fields`` holds the table-specific domain columns. ``synced`` is
    local bookkeeping and never leaves the device.
    """

    owner_id: str
    table: str
    fields: dict[str, Any]
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    deleted_at: datetime | None = None
    synced: bool = False

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def update(self, fields: dict[str, Any], at: datetime | None = None) -> None:
        """Merge new field values and advance updated_at, never backwards."""
        self.fields = {**self.fields, **fields}
        self.touch(at)

    def touch(self, at: datetime | None = None) -> None:
        now = at or utc_now()
        self.updated_at = max(now, self.updated_at)
        self.synced = False

    def mark_deleted(self, at: datetime | None = None) -> None:
        self.touch(at)
        self.deleted_at = self.updated_at

    def revive(self, fields: dict[str, Any], at: datetime | None = None) -> None:
        """Turn a tombstone back into a live record holding ``fields``.

        updated_at moves strictly past the deletion so the revival wins
        last-write-wins against the remote tombstone.
        """
        now = at or utc_now()
        self.fields = dict(fields)
        self.updated_at = max(now, self.updated_at + timedelta(microseconds=1))
        self.deleted_at = None
        self.synced = False

    def copy(self, **changes: Any) -> "Record":
        changes.setdefault("fields", dict(self.fields))
        return replace(self, **changes)

    def to_remote(self) -> dict[str, Any]:
        """Serialise to the remote wire shape, dropping local-only state."""
        return {
            **self.fields,
            "id": self.id,
            "user_id": self.owner_id,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "deleted_at": format_timestamp(self.deleted_at),
        }

    @classmethod
    def from_remote(cls, table: str, row: dict[str, Any], *, synced: bool = True) -> "Record":
        """Build a record from a remote row (or a queued wire payload)."""
        return cls(
            id=str(row["id"]),
            owner_id=str(row["user_id"]),
            table=table,
            fields={k: v for k, v in row.items() if k not in _ENVELOPE_COLUMNS},
            created_at=parse_timestamp(row.get("created_at")) or utc_now(),
            updated_at=parse_timestamp(row.get("updated_at")) or utc_now(),
            deleted_at=parse_timestamp(row.get("deleted_at")),
            synced=synced,
        )
