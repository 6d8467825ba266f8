"""Abstract interface (port) for the outbound mutation queue."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from notesync.domain.entities import MutationAction, MutationQueueEntry


class MutationQueue(ABC):
    """Append-only log of write intents awaiting the remote store.

    Write failures are raised as ``QueueError``; an entry is persisted
    completely or not at all.
    """

    @abstractmethod
    async def enqueue(
        self,
        owner_id: str,
        action: MutationAction,
        target_table: str,
        target_record_id: str,
        payload: dict[str, Any],
    ) -> MutationQueueEntry:
        """Persist a new pending entry and return it."""
        ...

    @abstractmethod
    async def get(self, entry_id: str) -> MutationQueueEntry | None:
        ...

    @abstractmethod
    async def list_pending(self, owner_id: str) -> list[MutationQueueEntry]:
        """Pending entries for an owner in replay order."""
        ...

    @abstractmethod
    async def mark_synced(self, entry_id: str) -> MutationQueueEntry | None:
        """Pending → synced. A terminal entry is returned unchanged."""
        ...

    @abstractmethod
    async def mark_failed(self, entry_id: str, error: str | None = None) -> MutationQueueEntry | None:
        """Pending → failed. A terminal entry is returned unchanged."""
        ...

    @abstractmethod
    async def requeue_failed(self, owner_id: str, max_attempts: int) -> int:
        """Move failed entries with attempts below the limit back to pending."""
        ...

    @abstractmethod
    async def list_outstanding_targets(self, owner_id: str) -> set[str]:
        """Record ids that still have a pending or failed entry."""
        ...

    @abstractmethod
    async def count_by_status(self, owner_id: str) -> dict[str, int]:
        ...

    @abstractmethod
    async def purge_synced(self, owner_id: str, older_than: datetime) -> int:
        """Delete synced entries confirmed before ``older_than``."""
        ...
