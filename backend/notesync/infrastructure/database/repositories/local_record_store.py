"""Local record store backed by SQLAlchemy (SQLite on device)."""

import logging
from datetime import datetime

from sqlalchemy import Select, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notesync.application.interfaces import LocalRecordStore
from notesync.application.services.event_broadcaster import EventBroadcaster
from notesync.domain.entities import Record, utc_now
from notesync.domain.exceptions import EntityNotFoundError, LocalStorageError
from notesync.infrastructure.database.models import LocalRecordModel

logger = logging.getLogger(__name__)


class SQLAlchemyLocalRecordStore(LocalRecordStore):
    """Implements the LocalRecordStore port with one committed transaction per write.

    When a broadcaster is supplied, every committed change is published as
    a ``record_changed`` event on the owner's topic.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        broadcaster: EventBroadcaster | None = None,
    ):
        self._session_factory = session_factory
        self._broadcaster = broadcaster

    @staticmethod
    def _to_entity(model: LocalRecordModel) -> Record:
        """Map ORM model → domain entity."""
        return Record(
            id=model.id,
            owner_id=model.owner_id,
            table=model.table_name,
            fields=dict(model.fields or {}),
            created_at=model.created_at,
            updated_at=model.updated_at,
            deleted_at=model.deleted_at,
            synced=model.synced,
        )

    @staticmethod
    def _apply(model: LocalRecordModel, record: Record) -> None:
        model.owner_id = record.owner_id
        model.table_name = record.table
        model.fields = dict(record.fields)
        model.created_at = record.created_at
        model.updated_at = record.updated_at
        model.deleted_at = record.deleted_at
        model.synced = record.synced

    async def put(self, record: Record) -> Record:
        try:
            async with self._session_factory() as session:
                model = await session.get(LocalRecordModel, record.id)
                if model is None:
                    model = LocalRecordModel(id=record.id)
                    session.add(model)
                self._apply(model, record)
                await session.commit()
        except (SQLAlchemyError, OSError, TypeError, ValueError) as exc:
            logger.error("Local write failed for record %s: %s", record.id, exc)
            raise LocalStorageError("put", str(exc)) from exc

        await self._notify(record, "upserted")
        return record

    async def get(self, record_id: str) -> Record | None:
        try:
            async with self._session_factory() as session:
                model = await session.get(LocalRecordModel, record_id)
                return self._to_entity(model) if model else None
        except SQLAlchemyError as exc:
            raise LocalStorageError("get", str(exc)) from exc

    async def list_by_owner(self, owner_id: str, table: str | None = None) -> list[Record]:
        stmt = select(LocalRecordModel).where(
            LocalRecordModel.owner_id == owner_id,
            LocalRecordModel.deleted_at.is_(None),
        )
        if table is not None:
            stmt = stmt.where(LocalRecordModel.table_name == table)
        return await self._select(stmt, "list_by_owner")

    async def list_unsynced(self, owner_id: str) -> list[Record]:
        stmt = select(LocalRecordModel).where(
            LocalRecordModel.owner_id == owner_id,
            LocalRecordModel.synced.is_(False),
        )
        return await self._select(stmt, "list_unsynced")

    async def _select(self, stmt: Select, operation: str) -> list[Record]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [self._to_entity(row) for row in result.scalars().all()]
        except SQLAlchemyError as exc:
            logger.error("Local read failed (%s): %s", operation, exc)
            raise LocalStorageError(operation, str(exc)) from exc

    async def soft_delete(self, record_id: str, at: datetime | None = None) -> Record:
        try:
            async with self._session_factory() as session:
                model = await session.get(LocalRecordModel, record_id)
                if model is None:
                    raise EntityNotFoundError("Record", record_id)
                record = self._to_entity(model)
                record.mark_deleted(at or utc_now())
                self._apply(model, record)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Local soft delete failed for record %s: %s", record_id, exc)
            raise LocalStorageError("soft_delete", str(exc)) from exc

        await self._notify(record, "deleted")
        return record

    async def mark_synced(self, record_id: str, up_to: datetime) -> bool:
        try:
            async with self._session_factory() as session:
                model = await session.get(LocalRecordModel, record_id)
                if model is None or model.synced or model.updated_at > up_to:
                    return False
                model.synced = True
                await session.commit()
                record = self._to_entity(model)
        except SQLAlchemyError as exc:
            raise LocalStorageError("mark_synced", str(exc)) from exc

        await self._notify(record, "synced")
        return True

    async def delete_owner_data(self, owner_id: str) -> int:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(LocalRecordModel).where(LocalRecordModel.owner_id == owner_id)
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise LocalStorageError("delete_owner_data", str(exc)) from exc

        logger.info("Cleared %d local records for owner %s", result.rowcount, owner_id)
        return result.rowcount

    async def _notify(self, record: Record, change: str) -> None:
        if self._broadcaster is None:
            return
        await self._broadcaster.publish(
            record.owner_id,
            "record_changed",
            {"record_id": record.id, "table": record.table, "change": change},
        )
