"""Record facade — the application's single entry point for record reads and writes.

Writes are optimistic: the local store is updated first, the intent is
appended to the mutation queue, and (when online) a best-effort direct
remote write is started as a task. Reads always come from the local store.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from notesync.application.interfaces import LocalRecordStore, MutationQueue, RemoteGateway
from notesync.domain.entities import (
    ConnectivityState,
    MutationAction,
    MutationQueueEntry,
    Record,
    utc_now,
)
from notesync.domain.exceptions import (
    EntityNotFoundError,
    QueueError,
    RecordConflictError,
    RemoteGatewayError,
    UnsupportedTableError,
)
from notesync.infrastructure.logging.sync_logger import SyncLogger, SyncStage

logger = logging.getLogger(__name__)
merge_log = SyncLogger("SyncPass")

_IMMUTABLE_COLUMNS = ("id", "user_id", "created_at")

RemoteCall = Callable[[], Awaitable[bool]]


@dataclass
class LocalWriteResult:
    """Outcome of an optimistic write.

    ``remote_task`` resolves to True when the direct remote write succeeded;
    it is None when no direct write was attempted (offline or disabled).
    """

    record: Record
    entry: MutationQueueEntry | None = None
    remote_task: asyncio.Task | None = None

    @property
    def queued(self) -> bool:
        return self.entry is not None


@dataclass
class MergeReport:
    """Counts from a start-up merge of one table."""

    table: str
    pushed: int = 0
    pulled: int = 0
    conflicts: list[str] = field(default_factory=list)
    skipped: bool = False


class RecordFacade:
    """Application service: optimistic record CRUD plus the start-up merge."""

    def __init__(
        self,
        store: LocalRecordStore,
        queue: MutationQueue,
        gateway: RemoteGateway,
        connectivity: ConnectivityState,
        allowed_tables: Iterable[str] = ("notes", "training_completions"),
        direct_writes: bool = True,
    ):
        self._store = store
        self._queue = queue
        self._gateway = gateway
        self._connectivity = connectivity
        self._allowed_tables = frozenset(allowed_tables)
        self._direct_writes = direct_writes
        self._remote_tasks: set[asyncio.Task] = set()

    # ── Reads ────────────────────────────────────────────────────────

    async def get_record(self, record_id: str) -> Record | None:
        record = await self._store.get(record_id)
        if record is None or record.is_deleted:
            return None
        return record

    async def list_records(self, owner_id: str, table: str | None = None) -> list[Record]:
        """Live records of an owner, newest first."""
        if table is not None:
            self._check_table(table)
        records = await self._store.list_by_owner(owner_id, table)
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    # ── Writes ───────────────────────────────────────────────────────

    async def create_record(
        self,
        owner_id: str,
        table: str,
        fields: dict[str, Any],
        record_id: str | None = None,
    ) -> LocalWriteResult:
        """Create a record, or revive the caller's own tombstone with the same id.

        Raises ``RecordConflictError`` when the id belongs to a live record
        or to another owner.
        """
        self._check_table(table)
        existing = await self._store.get(record_id) if record_id else None
        if existing is None:
            now = utc_now()
            record = Record(
                owner_id=owner_id,
                table=table,
                fields=dict(fields),
                id=record_id or str(uuid4()),
                created_at=now,
                updated_at=now,
            )
        elif existing.owner_id != owner_id:
            raise RecordConflictError(existing.id, "owned by another user")
        elif not existing.is_deleted:
            raise RecordConflictError(existing.id, "a live record already uses it")
        elif existing.table != table:
            raise RecordConflictError(existing.id, f"it belongs to {existing.table}")
        else:
            record = existing
            record.revive(fields)

        await self._store.put(record)
        entry = await self._enqueue(MutationAction.CREATE, record)
        task = self._start_remote_write(record, lambda: self._push_create(record))
        return LocalWriteResult(record=record, entry=entry, remote_task=task)

    async def update_record(self, record_id: str, fields: dict[str, Any]) -> LocalWriteResult:
        record = await self.get_record(record_id)
        if record is None:
            raise EntityNotFoundError("Record", record_id)

        record.update(fields)
        await self._store.put(record)
        entry = await self._enqueue(MutationAction.UPDATE, record)
        changes = {k: v for k, v in record.to_remote().items() if k not in _IMMUTABLE_COLUMNS}
        task = self._start_remote_write(record, lambda: self._push_update(record, changes))
        return LocalWriteResult(record=record, entry=entry, remote_task=task)

    async def delete_record(self, record_id: str) -> LocalWriteResult:
        if await self.get_record(record_id) is None:
            raise EntityNotFoundError("Record", record_id)

        record = await self._store.soft_delete(record_id)
        entry = await self._enqueue(MutationAction.DELETE, record)
        task = self._start_remote_write(record, lambda: self._push_delete(record))
        return LocalWriteResult(record=record, entry=entry, remote_task=task)

    async def drain(self) -> None:
        """Wait for every outstanding direct remote write."""
        if self._remote_tasks:
            await asyncio.gather(*list(self._remote_tasks), return_exceptions=True)

    # ── Start-up merge ───────────────────────────────────────────────

    async def merge_on_init(self, owner_id: str, table: str) -> MergeReport:
        """One-time merge of local and remote records for ``table``.

        Local live records whose ids the remote does not have are pushed;
        remote records the device lacks are saved locally. For ids held by
        both, the remote copy replaces the local one only when the local
        copy is already synced. Unsynced divergent copies are left for the
        reconciler and reported in ``conflicts``.
        """
        self._check_table(table)
        report = MergeReport(table=table)
        if not self._connectivity.is_online:
            logger.info("Offline — skipping start-up merge of %s", table)
            report.skipped = True
            return report

        try:
            remote_records = await self._gateway.fetch_all(table, owner_id)
        except RemoteGatewayError as exc:
            logger.warning("Start-up merge of %s skipped: %s", table, exc)
            report.skipped = True
            return report

        remote_by_id = {r.id: r for r in remote_records}
        for local in await self._store.list_by_owner(owner_id, table):
            if local.id in remote_by_id:
                continue
            try:
                stored = await self._gateway.create(local)
            except RemoteGatewayError as exc:
                merge_log.step_error(SyncStage.MERGE, f"Push {table}/{local.id}", error=exc)
                continue
            if stored is None:
                # Id taken remotely by a tombstone; the reconciler decides by LWW.
                merge_log.detail("Remote already holds this id", record=local.id)
                continue
            await self._store.mark_synced(local.id, local.updated_at)
            report.pushed += 1

        for remote in remote_records:
            local = await self._store.get(remote.id)
            if local is None or (local.synced and local != remote):
                await self._store.put(remote.copy(synced=True))
                report.pulled += 1
            elif not local.synced and (
                local.fields != remote.fields or local.updated_at != remote.updated_at
            ):
                logger.info(
                    "Local and remote copies of %s/%s diverged; keeping the local edit",
                    table, remote.id,
                )
                report.conflicts.append(remote.id)

        merge_log.step(
            SyncStage.MERGE,
            f"Merged {table}",
            pushed=report.pushed,
            pulled=report.pulled,
            conflicts=len(report.conflicts),
        )
        return report

    # ── Helpers ──────────────────────────────────────────────────────

    def _check_table(self, table: str) -> None:
        if table not in self._allowed_tables:
            raise UnsupportedTableError(table)

    async def _enqueue(self, action: MutationAction, record: Record) -> MutationQueueEntry | None:
        try:
            return await self._queue.enqueue(
                record.owner_id, action, record.table, record.id, record.to_remote()
            )
        except QueueError as exc:
            # Record stays unsynced; the next reconciliation re-derives the intent.
            logger.error("Could not queue %s for %s: %s", action.value, record.id, exc)
            return None

    def _start_remote_write(self, record: Record, call: RemoteCall) -> asyncio.Task | None:
        if not (self._direct_writes and self._connectivity.is_online):
            return None
        task = asyncio.get_running_loop().create_task(self._remote_write(record, call))
        self._remote_tasks.add(task)
        task.add_done_callback(self._remote_tasks.discard)
        return task

    async def _push_create(self, record: Record) -> bool:
        # An ignored insert (the id exists remotely) is settled by the reconciler.
        return await self._gateway.create(record) is not None

    async def _push_update(self, record: Record, changes: dict[str, Any]) -> bool:
        await self._gateway.update(record.table, record.id, changes)
        return True

    async def _push_delete(self, record: Record) -> bool:
        await self._gateway.soft_delete(record.table, record.id, record.deleted_at)
        return True

    async def _remote_write(self, record: Record, call: RemoteCall) -> bool:
        try:
            applied = await call()
        except Exception as exc:
            logger.info("Direct write of %s/%s deferred to queue: %s", record.table, record.id, exc)
            return False
        if not applied:
            logger.info("Direct write of %s/%s not applied; left to the queue", record.table, record.id)
            return False

        try:
            await self._store.mark_synced(record.id, record.updated_at)
        except Exception as exc:
            logger.warning("Could not flag %s synced locally: %s", record.id, exc)
            return False
        return True
