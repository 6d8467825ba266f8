"""Abstract interface (port) for the device-local record store."""

from abc import ABC, abstractmethod
from datetime import datetime

from notesync.domain.entities import Record


class LocalRecordStore(ABC):
    """Durable per-device storage of records, keyed by id.

    Implementations never talk to the network. Write failures are raised
    as ``LocalStorageError``.
    """

    @abstractmethod
    async def put(self, record: Record) -> Record:
        """Upsert by id, replacing the stored value entirely."""
        ...

    @abstractmethod
    async def get(self, record_id: str) -> Record | None:
        """Retrieve a record by id, including soft-deleted ones."""
        ...

    @abstractmethod
    async def list_by_owner(self, owner_id: str, table: str | None = None) -> list[Record]:
        """All live (not soft-deleted) records of an owner. Order unspecified."""
        ...

    @abstractmethod
    async def list_unsynced(self, owner_id: str) -> list[Record]:
        """Records of an owner not yet confirmed by the remote, tombstones included."""
        ...

    @abstractmethod
    async def soft_delete(self, record_id: str, at: datetime | None = None) -> Record:
        """Set deleted_at/updated_at and clear synced. Returns the tombstone."""
        ...

    @abstractmethod
    async def mark_synced(self, record_id: str, up_to: datetime) -> bool:
        """Flag a record synced if nothing newer than ``up_to`` was written locally."""
        ...

    @abstractmethod
    async def delete_owner_data(self, owner_id: str) -> int:
        """Physically remove every record of an owner (sign-out wipe)."""
        ...
