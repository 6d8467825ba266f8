"""SQLAlchemy implementation of the MutationQueue."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notesync.application.interfaces import MutationQueue
from notesync.domain.entities import (
    MutationAction,
    MutationQueueEntry,
    MutationStatus,
    utc_now,
)
from notesync.domain.exceptions import QueueError
from notesync.infrastructure.database.models import MutationQueueEntryModel

logger = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)


class SQLAlchemyMutationQueue(MutationQueue):
    """Concrete mutation queue persisted next to the local records.

    ``created_at`` is kept strictly increasing within the process so that
    replay order always matches enqueue order.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utc_now,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._last_created_at: datetime | None = None

    def _next_timestamp(self) -> datetime:
        now = self._clock()
        if self._last_created_at is not None and now <= self._last_created_at:
            now = self._last_created_at + _TICK
        self._last_created_at = now
        return now

    async def enqueue(
        self,
        owner_id: str,
        action: MutationAction,
        target_table: str,
        target_record_id: str,
        payload: dict[str, Any],
    ) -> MutationQueueEntry:
        entry = MutationQueueEntry(
            owner_id=owner_id,
            action=MutationAction(action),
            target_table=target_table,
            target_record_id=target_record_id,
            payload=dict(payload),
            created_at=self._next_timestamp(),
        )
        model = MutationQueueEntryModel(
            entry_id=entry.entry_id,
            owner_id=entry.owner_id,
            action=entry.action.value,
            target_table=entry.target_table,
            target_record_id=entry.target_record_id,
            payload=entry.payload,
            created_at=entry.created_at,
            status=entry.status.value,
            synced_at=None,
            attempts=0,
            last_error=None,
        )
        try:
            async with self._session_factory() as session:
                session.add(model)
                await session.commit()
        except (SQLAlchemyError, OSError, TypeError, ValueError) as exc:
            logger.error(
                "Could not enqueue %s for %s/%s: %s",
                entry.action.value, target_table, target_record_id, exc,
            )
            raise QueueError("enqueue", str(exc)) from exc

        logger.debug(
            "Enqueued %s %s/%s as %s",
            entry.action.value, target_table, target_record_id, entry.entry_id,
        )
        return entry

    async def get(self, entry_id: str) -> MutationQueueEntry | None:
        try:
            async with self._session_factory() as session:
                model = await session.get(MutationQueueEntryModel, entry_id)
                return self._to_domain(model) if model else None
        except SQLAlchemyError as exc:
            raise QueueError("get", str(exc)) from exc

    async def list_pending(self, owner_id: str) -> list[MutationQueueEntry]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(MutationQueueEntryModel)
                    .where(
                        MutationQueueEntryModel.owner_id == owner_id,
                        MutationQueueEntryModel.status == MutationStatus.PENDING.value,
                    )
                    .order_by(
                        MutationQueueEntryModel.created_at.asc(),
                        MutationQueueEntryModel.entry_id.asc(),
                    )
                )
                return [self._to_domain(m) for m in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.error("Could not list pending entries for %s: %s", owner_id, exc)
            raise QueueError("list_pending", str(exc)) from exc

    async def mark_synced(self, entry_id: str) -> MutationQueueEntry | None:
        return await self._transition(entry_id, "mark_synced", lambda e: e.mark_synced(utc_now()))

    async def mark_failed(self, entry_id: str, error: str | None = None) -> MutationQueueEntry | None:
        return await self._transition(entry_id, "mark_failed", lambda e: e.mark_failed(error))

    async def requeue_failed(self, owner_id: str, max_attempts: int) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(MutationQueueEntryModel).where(
                        MutationQueueEntryModel.owner_id == owner_id,
                        MutationQueueEntryModel.status == MutationStatus.FAILED.value,
                        MutationQueueEntryModel.attempts < max_attempts,
                    )
                )
                models = result.scalars().all()
                for model in models:
                    model.status = MutationStatus.PENDING.value
                await session.commit()
        except SQLAlchemyError as exc:
            raise QueueError("requeue_failed", str(exc)) from exc
        return len(models)

    async def list_outstanding_targets(self, owner_id: str) -> set[str]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(MutationQueueEntryModel.target_record_id)
                    .where(
                        MutationQueueEntryModel.owner_id == owner_id,
                        MutationQueueEntryModel.status != MutationStatus.SYNCED.value,
                    )
                    .distinct()
                )
                return set(result.scalars().all())
        except SQLAlchemyError as exc:
            raise QueueError("list_outstanding_targets", str(exc)) from exc

    async def count_by_status(self, owner_id: str) -> dict[str, int]:
        counts = {status.value: 0 for status in MutationStatus}
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(MutationQueueEntryModel.status, func.count())
                    .where(MutationQueueEntryModel.owner_id == owner_id)
                    .group_by(MutationQueueEntryModel.status)
                )
                for status, count in result.all():
                    counts[status] = count
        except SQLAlchemyError as exc:
            raise QueueError("count_by_status", str(exc)) from exc
        return counts

    async def purge_synced(self, owner_id: str, older_than: datetime) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(MutationQueueEntryModel).where(
                        MutationQueueEntryModel.owner_id == owner_id,
                        MutationQueueEntryModel.status == MutationStatus.SYNCED.value,
                        MutationQueueEntryModel.synced_at < older_than,
                    )
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise QueueError("purge_synced", str(exc)) from exc
        return result.rowcount

    async def _transition(
        self,
        entry_id: str,
        operation: str,
        change: Callable[[MutationQueueEntry], bool],
    ) -> MutationQueueEntry | None:
        try:
            async with self._session_factory() as session:
                model = await session.get(MutationQueueEntryModel, entry_id)
                if model is None:
                    return None
                entry = self._to_domain(model)
                if not change(entry):
                    return entry
                model.status = entry.status.value
                model.synced_at = entry.synced_at
                model.attempts = entry.attempts
                model.last_error = entry.last_error
                await session.commit()
        except SQLAlchemyError as exc:
            raise QueueError(operation, str(exc)) from exc
        return entry

    # ── Mapping ──────────────────────────────────────────────────────

    @staticmethod
    def _to_domain(model: MutationQueueEntryModel) -> MutationQueueEntry:
        return MutationQueueEntry(
            entry_id=model.entry_id,
            owner_id=model.owner_id,
            action=MutationAction(model.action),
            target_table=model.target_table,
            target_record_id=model.target_record_id,
            payload=dict(model.payload or {}),
            created_at=model.created_at,
            status=MutationStatus(model.status),
            synced_at=model.synced_at,
            attempts=model.attempts,
            last_error=model.last_error,
        )
