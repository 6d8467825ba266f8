"""Reconciler — drains the mutation queue against the remote store.

Entries are replayed per owner in ``(created_at, entry_id)`` order. A
failing entry never aborts the pass, but later entries for the same
record wait until it succeeds so a record's history is applied in order.
Updates resolve conflicts by last-write-wins on ``updated_at``.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from notesync.application.interfaces import LocalRecordStore, MutationQueue, RemoteGateway
from notesync.application.services.event_broadcaster import EventBroadcaster
from notesync.domain.entities import (
    ConnectivityState,
    MutationAction,
    MutationQueueEntry,
    MutationStatus,
    Record,
    SyncResult,
    parse_timestamp,
    utc_now,
)
from notesync.domain.exceptions import (
    LocalStorageError,
    QueueError,
    RemoteNotFoundError,
    RemoteRejectedError,
)
from notesync.infrastructure.logging.sync_logger import SyncLogger, SyncStage

logger = logging.getLogger(__name__)
sync_log = SyncLogger("SyncPass")

# Envelope columns that never change after a record is created.
_IMMUTABLE_COLUMNS = ("id", "user_id", "created_at")


class Reconciler:
    """Application service: one reconciliation pass per call.

    Safe to call while another pass is in flight: an entry being applied
    by one pass is skipped by the others, and every entry is re-read right
    before it is applied and skipped unless still pending.
    """

    def __init__(
        self,
        store: LocalRecordStore,
        queue: MutationQueue,
        gateway: RemoteGateway,
        connectivity: ConnectivityState,
        broadcaster: EventBroadcaster | None = None,
        max_attempts: int = 5,
        retention: timedelta | None = None,
    ):
        self._store = store
        self._queue = queue
        self._gateway = gateway
        self._connectivity = connectivity
        self._broadcaster = broadcaster
        self._max_attempts = max_attempts
        self._retention = retention
        self._in_flight: set[str] = set()

    async def reconcile(self, owner_id: str) -> SyncResult:
        """Replay every pending entry of ``owner_id`` and report the counts.

        ``sync_complete`` is published even when the local store or queue
        cannot be read; such a pass ends early with ``deferred`` set.
        """
        if not self._connectivity.is_online:
            logger.info("Offline — reconciliation for %s deferred", owner_id)
            return SyncResult(deferred=True)

        result = SyncResult()
        with sync_log.timed_pass("Reconciling", owner=owner_id):
            try:
                await self._prepare(owner_id)
                await self._drain(owner_id, result)
            except (QueueError, LocalStorageError) as exc:
                sync_log.step_error(SyncStage.ERROR, "Local data unreadable — stopping pass", error=exc)
                result.deferred = True

            sync_log.stats(
                processed=result.processed,
                failed=result.failed,
                skipped=result.skipped,
            )

        await self._purge(owner_id)
        if self._broadcaster is not None:
            await self._broadcaster.publish(owner_id, "sync_complete", result.as_signal())
        return result

    async def pull(self, owner_id: str, table: str) -> int:
        """Copy remote records into the local store without touching local edits.

        Remote records missing locally are saved as synced. A local copy is
        replaced only when it is already synced and the remote is at least
        as new. Returns the number of local records written.
        """
        remote_records = await self._gateway.fetch_all(table, owner_id)
        written = 0

        for remote in remote_records:
            local = await self._store.get(remote.id)
            if local is None:
                await self._store.put(remote.copy(synced=True))
                written += 1
            elif local.synced and remote.updated_at >= local.updated_at and remote != local:
                await self._store.put(remote.copy(synced=True))
                written += 1

        sync_log.step(SyncStage.PULL, f"Pulled {table}", fetched=len(remote_records), written=written)
        return written

    # ── Pass stages ──────────────────────────────────────────────────

    async def _prepare(self, owner_id: str) -> None:
        """Retry failed entries and re-derive intents whose enqueue was lost."""
        try:
            requeued = await self._queue.requeue_failed(owner_id, self._max_attempts)
        except QueueError as exc:
            logger.warning("Could not requeue failed entries for %s: %s", owner_id, exc)
            requeued = 0
        if requeued:
            sync_log.detail("Requeued failed entries", count=requeued)

        outstanding = await self._queue.list_outstanding_targets(owner_id)
        for record in await self._store.list_unsynced(owner_id):
            if record.id in outstanding:
                continue
            action = MutationAction.DELETE if record.is_deleted else MutationAction.UPDATE
            try:
                await self._queue.enqueue(
                    owner_id, action, record.table, record.id, record.to_remote()
                )
            except QueueError as exc:
                logger.warning("Could not recover intent for %s: %s", record.id, exc)
                continue
            sync_log.step(
                SyncStage.PUSH,
                f"Recovered {action.value} {record.table}/{record.id}",
            )

    async def _drain(self, owner_id: str, result: SyncResult) -> None:
        entries = sorted(await self._queue.list_pending(owner_id), key=lambda e: e.sort_key)
        blocked: set[tuple[str, str]] = set()

        for entry in entries:
            if not self._connectivity.is_online:
                sync_log.step(SyncStage.PASS, "Connectivity lost — stopping pass")
                result.deferred = True
                break

            if entry.target in blocked:
                sync_log.detail(
                    "Waiting on earlier entry",
                    entry=entry.entry_id,
                    target="/".join(entry.target),
                )
                result.skipped += 1
                continue

            if entry.entry_id in self._in_flight:
                # Another pass is applying it right now.
                blocked.add(entry.target)
                continue

            self._in_flight.add(entry.entry_id)
            try:
                current = await self._queue.get(entry.entry_id)
                if current is None or current.status is not MutationStatus.PENDING:
                    sync_log.detail("Entry already handled", entry=entry.entry_id)
                    if current is not None and current.status is MutationStatus.FAILED:
                        blocked.add(entry.target)
                    continue

                if await self._apply(current):
                    result.processed += 1
                else:
                    blocked.add(current.target)
                    result.failed += 1
            finally:
                self._in_flight.discard(entry.entry_id)

    async def _apply(self, entry: MutationQueueEntry) -> bool:
        """Dispatch one entry. Returns False when it failed (or could not be marked)."""
        label = f"{entry.action.value} {entry.target_table}/{entry.target_record_id}"
        try:
            if entry.action is MutationAction.CREATE:
                await self._push_create(entry)
            elif entry.action is MutationAction.UPDATE:
                await self._push_update(entry)
            elif entry.action is MutationAction.DELETE:
                deleted_at = parse_timestamp(entry.payload.get("deleted_at"))
                await self._gateway.soft_delete(
                    entry.target_table, entry.target_record_id, deleted_at
                )
        except Exception as exc:
            sync_log.step_error(SyncStage.PUSH, label, error=exc)
            try:
                await self._queue.mark_failed(entry.entry_id, f"{type(exc).__name__}: {exc}")
            except QueueError as mark_exc:
                logger.error("Could not mark %s failed: %s", entry.entry_id, mark_exc)
            return False

        # Record before entry: a synced entry never leaves its record unsynced.
        await self._confirm_local(entry)
        try:
            await self._queue.mark_synced(entry.entry_id)
        except QueueError as exc:
            # Remote write is idempotent; the entry is retried next pass.
            logger.error("Could not mark %s synced: %s", entry.entry_id, exc)
            return False

        sync_log.step(SyncStage.PUSH, label, entry=entry.entry_id)
        return True

    async def _push_create(self, entry: MutationQueueEntry) -> None:
        """Insert the payload; an id already held remotely is settled by last-write-wins."""
        if await self._gateway.create(self._payload_record(entry)) is not None:
            return
        sync_log.detail("Remote already holds the id", record=entry.target_record_id)
        await self._push_update(entry, include_deleted=True)

    async def _push_update(self, entry: MutationQueueEntry, include_deleted: bool = False) -> None:
        """Last-write-wins update; falls back to create when the remote lacks the record.

        With ``include_deleted`` the remote row may be a tombstone, and a
        newer payload brings it back since it carries ``deleted_at=None``.
        """
        table, record_id = entry.target
        local_updated_at = parse_timestamp(entry.payload.get("updated_at"))

        try:
            remote = await self._gateway.get(table, record_id, include_deleted=include_deleted)
        except RemoteNotFoundError:
            if include_deleted:
                raise
            sync_log.detail("Remote record missing, pushing as create", record=record_id)
            await self._push_create(entry)
            return

        if remote.owner_id != entry.owner_id:
            raise RemoteRejectedError(409, f"{table}/{record_id} belongs to another user")

        if local_updated_at is not None and remote.updated_at >= local_updated_at:
            sync_log.step(
                SyncStage.CONFLICT,
                f"Remote wins for {table}/{record_id}",
                remote=remote.updated_at.isoformat(),
                local=local_updated_at.isoformat(),
            )
            await self._adopt_remote(remote, local_updated_at)
            return

        fields: dict[str, Any] = {
            k: v for k, v in entry.payload.items() if k not in _IMMUTABLE_COLUMNS
        }
        await self._gateway.update(table, record_id, fields, include_deleted=include_deleted)

    async def _adopt_remote(self, remote: Record, superseded_at: datetime) -> None:
        """Replace the local copy with the remote view unless it was edited since."""
        local = await self._store.get(remote.id)
        if local is None or local.updated_at > superseded_at:
            return
        try:
            await self._store.put(remote.copy(synced=True))
        except LocalStorageError as exc:
            logger.warning("Could not store remote view of %s: %s", remote.id, exc)

    async def _confirm_local(self, entry: MutationQueueEntry) -> None:
        up_to = parse_timestamp(entry.payload.get("updated_at"))
        if up_to is None:
            return
        try:
            await self._store.mark_synced(entry.target_record_id, up_to)
        except LocalStorageError as exc:
            logger.warning("Could not flag %s synced locally: %s", entry.target_record_id, exc)

    async def _purge(self, owner_id: str) -> None:
        if self._retention is None:
            return
        try:
            purged = await self._queue.purge_synced(owner_id, utc_now() - self._retention)
        except QueueError as exc:
            logger.warning("Queue purge failed for %s: %s", owner_id, exc)
            return
        if purged:
            logger.info("Purged %d synced queue entries for %s", purged, owner_id)

    @staticmethod
    def _payload_record(entry: MutationQueueEntry) -> Record:
        return Record.from_remote(entry.target_table, entry.payload, synced=False)
