"""Abstract interface (port) for the remote store of record."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from notesync.domain.entities import HealthStatus, Record


class RemoteGateway(ABC):
    """The only component that talks to the network.

    Every call except ``health_check`` may raise a ``RemoteGatewayError``
    subclass; callers decide retry/skip from the concrete type.
    """

    @abstractmethod
    async def health_check(self) -> HealthStatus:
        """Cheap reachability probe. Never raises; unauthenticated is still ok."""
        ...

    @abstractmethod
    async def create(self, record: Record) -> Record | None:
        """Insert a record if its id is new remotely.

        Returns the stored copy, or None when a row (live or soft-deleted)
        already holds the id and the insert was ignored.
        """
        ...

    @abstractmethod
    async def get(self, table: str, record_id: str, include_deleted: bool = False) -> Record:
        """Fetch one live record (or any row with ``include_deleted``) or raise ``RemoteNotFoundError``."""
        ...

    @abstractmethod
    async def fetch_all(self, table: str, owner_id: str) -> list[Record]:
        """All live records of an owner, newest first."""
        ...

    @abstractmethod
    async def update(
        self,
        table: str,
        record_id: str,
        fields: dict[str, Any],
        include_deleted: bool = False,
    ) -> Record:
        """Apply field values to a live record, or to a soft-deleted one with ``include_deleted``."""
        ...

    @abstractmethod
    async def soft_delete(
        self, table: str, record_id: str, deleted_at: datetime | None = None
    ) -> None:
        """Mark a record deleted. Already-deleted or missing records are not an error."""
        ...
