"""Domain entities for the outbound mutation queue."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4


class MutationAction(str, Enum):
    """Write intent carried by a queue entry."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class MutationStatus(str, Enum):
    """Lifecycle states of a queue entry."""

    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


@dataclass
class MutationQueueEntry:
    """A single pending write intent against the remote store.

    Entries are append-only: apart from the status transitions below
    (and the bookkeeping they carry) nothing about an entry changes
    after it is enqueued.
    """

    owner_id: str
    action: MutationAction
    target_table: str
    target_record_id: str
    payload: dict[str, Any]
    entry_id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: MutationStatus = MutationStatus.PENDING
    synced_at: datetime | None = None
    attempts: int = 0
    last_error: str | None = None

    @property
    def sort_key(self) -> tuple[datetime, str]:
        """Replay order: creation time, then entry id for identical timestamps."""
        return (self.created_at, self.entry_id)

    @property
    def target(self) -> tuple[str, str]:
        return (self.target_table, self.target_record_id)

    @property
    def is_terminal(self) -> bool:
        return self.status is not MutationStatus.PENDING

    def mark_synced(self, at: datetime | None = None) -> bool:
        """Transition pending → synced. Returns False (no-op) otherwise."""
        if self.is_terminal:
            return False
        self.status = MutationStatus.SYNCED
        self.synced_at = at or datetime.now(timezone.utc)
        return True

    def mark_failed(self, error: str | None = None) -> bool:
        """Transition pending → failed, recording the attempt."""
        if self.is_terminal:
            return False
        self.status = MutationStatus.FAILED
        self.attempts += 1
        self.last_error = (error or "Unknown error")[:500]
        return True

    def mark_requeued(self) -> bool:
        """Return a failed entry to pending for another attempt."""
        if self.status is not MutationStatus.FAILED:
            return False
        self.status = MutationStatus.PENDING
        return True


@dataclass
class SyncResult:
    """Aggregate outcome of one reconciliation pass.

    ``deferred`` means the pass stopped early; remaining entries wait for the next one.
    """

    processed: int = 0
    failed: int = 0
    skipped: int = 0
    deferred: bool = False

    def as_signal(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "failed": self.failed,
            "skipped": self.skipped,
            "deferred": self.deferred,
        }
