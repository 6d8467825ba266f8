"""Shared fixtures: a throwaway SQLite database per test and an in-memory remote."""

from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notesync.application.interfaces import RemoteGateway
from notesync.domain.entities import HealthStatus, Record, parse_timestamp, utc_now
from notesync.domain.exceptions import RemoteNotFoundError
from notesync.infrastructure.database import Base, build_engine, build_session_factory


class FakeRemoteGateway(RemoteGateway):
    """In-memory remote store with soft deletes and scripted failures.

    ``fail_with`` makes every data call raise until ``recover()``;
    ``fail_on`` fails only the calls touching the given record ids.
    """

    def __init__(self):
        self.rows: dict[str, Record] = {}
        self.calls: list[tuple[str, str]] = []
        self.healthy = True
        self.fail_with: Exception | None = None
        self.fail_on: dict[str, Exception] = {}

    def _check(self, operation: str, record_id: str) -> None:
        self.calls.append((operation, record_id))
        if record_id in self.fail_on:
            raise self.fail_on[record_id]
        if self.fail_with is not None:
            raise self.fail_with

    def recover(self) -> None:
        self.fail_with = None
        self.fail_on.clear()

    def seed(self, record: Record) -> Record:
        self.rows[record.id] = record.copy(synced=True)
        return self.rows[record.id]

    def live(self, record_id: str) -> Record | None:
        row = self.rows.get(record_id)
        return row if row is not None and not row.is_deleted else None

    async def health_check(self) -> HealthStatus:
        return HealthStatus(ok=self.healthy, count=len(self.rows) if self.healthy else None)

    async def create(self, record: Record) -> Record | None:
        self._check("create", record.id)
        if record.id in self.rows:
            return None
        self.rows[record.id] = record.copy(synced=True)
        return self.rows[record.id].copy()

    async def get(self, table: str, record_id: str, include_deleted: bool = False) -> Record:
        self._check("get", record_id)
        row = self.rows.get(record_id) if include_deleted else self.live(record_id)
        if row is None:
            raise RemoteNotFoundError(table, record_id)
        return row.copy()

    async def fetch_all(self, table: str, owner_id: str) -> list[Record]:
        self._check("fetch_all", owner_id)
        rows = [
            r.copy() for r in self.rows.values()
            if r.table == table and r.owner_id == owner_id and not r.is_deleted
        ]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    async def update(
        self,
        table: str,
        record_id: str,
        fields: dict[str, Any],
        include_deleted: bool = False,
    ) -> Record:
        self._check("update", record_id)
        row = self.rows.get(record_id) if include_deleted else self.live(record_id)
        if row is None:
            raise RemoteNotFoundError(table, record_id)
        envelope = {"updated_at", "deleted_at"}
        row.fields = {**row.fields, **{k: v for k, v in fields.items() if k not in envelope}}
        if "updated_at" in fields:
            row.updated_at = parse_timestamp(fields["updated_at"])
        if "deleted_at" in fields:
            row.deleted_at = parse_timestamp(fields["deleted_at"])
        return row.copy()

    async def soft_delete(
        self, table: str, record_id: str, deleted_at: datetime | None = None
    ) -> None:
        self._check("soft_delete", record_id)
        row = self.live(record_id)
        if row is None:
            return
        row.deleted_at = deleted_at or utc_now()
        row.updated_at = row.deleted_at


@pytest.fixture
def remote() -> FakeRemoteGateway:
    return FakeRemoteGateway()


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """A fresh SQLite file with the schema created."""
    engine = build_engine(f"sqlite:///{tmp_path / 'notesync-test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield build_session_factory(engine)
    finally:
        await engine.dispose()


@pytest.fixture
def drop_schema(session_factory):
    """Drop every table so the next read or write fails inside SQLAlchemy."""

    async def _drop() -> None:
        async with session_factory.kw["bind"].begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    return _drop
