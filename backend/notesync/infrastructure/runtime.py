"""Sync runtime — wires the sync engine's components for one process."""

import logging
from dataclasses import dataclass
from datetime import timedelta

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notesync.application.services import (
    ConnectivityMonitor,
    EventBroadcaster,
    MergeReport,
    Reconciler,
    RecordFacade,
)
from notesync.application.interfaces import RemoteGateway
from notesync.config import Settings
from notesync.domain.entities import AuthSession, ConnectivityState
from notesync.infrastructure.database.repositories import (
    SQLAlchemyLocalRecordStore,
    SQLAlchemyMutationQueue,
)
from notesync.infrastructure.remote import PostgrestRemoteGateway

logger = logging.getLogger(__name__)


@dataclass
class SyncRuntime:
    """Everything the API layer needs, built once per process."""

    settings: Settings
    session: AuthSession
    connectivity: ConnectivityState
    broadcaster: EventBroadcaster
    store: SQLAlchemyLocalRecordStore
    queue: SQLAlchemyMutationQueue
    gateway: RemoteGateway
    reconciler: Reconciler
    facade: RecordFacade
    monitor: ConnectivityMonitor
    http_client: httpx.AsyncClient | None = None

    async def start(self) -> list[MergeReport]:
        """Process-start transition: probe, merge every synced table, start the monitor."""
        owner_id = self.session.owner_id
        if not owner_id:
            logger.info("No signed-in owner — sync runtime idle")
            return []

        health = await self.gateway.health_check()
        self.connectivity.set_online(health.ok)

        reports = []
        for table in self.settings.sync_tables:
            reports.append(await self.facade.merge_on_init(owner_id, table))

        self.monitor.start()
        return reports

    async def sign_in(self, owner_id: str, access_token: str) -> list[MergeReport]:
        if self.session.owner_id and self.session.owner_id != owner_id:
            await self.sign_out(wipe=True)
        self.session.sign_in(owner_id, access_token)
        return await self.start()

    async def sign_out(self, wipe: bool = True) -> None:
        """Stop syncing and (by default) remove the owner's local records."""
        owner_id = self.session.owner_id
        await self.monitor.stop()
        await self.facade.drain()
        self.session.sign_out()
        if wipe and owner_id:
            await self.store.delete_owner_data(owner_id)

    async def close(self) -> None:
        await self.monitor.stop()
        await self.facade.drain()
        await self.broadcaster.shutdown()
        if self.http_client is not None:
            await self.http_client.aclose()


def build_runtime(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    http_client: httpx.AsyncClient | None = None,
    gateway: RemoteGateway | None = None,
) -> SyncRuntime:
    """Wire store, queue, gateway, reconciler, facade and monitor from settings.

    ``gateway`` replaces the PostgREST adapter (tests pass an in-memory one).
    """
    session = AuthSession(
        owner_id=settings.owner_id or None,
        access_token=settings.access_token or None,
    )
    connectivity = ConnectivityState()
    broadcaster = EventBroadcaster()

    store = SQLAlchemyLocalRecordStore(session_factory, broadcaster)
    queue = SQLAlchemyMutationQueue(session_factory)
    if gateway is None:
        gateway = PostgrestRemoteGateway(
            base_url=settings.remote_url,
            api_key=settings.remote_api_key,
            session=session,
            allowed_tables=settings.sync_tables,
            timeout=settings.remote_timeout_seconds,
            http_client=http_client,
        )
    retention = (
        timedelta(days=settings.queue_retention_days)
        if settings.queue_retention_days > 0
        else None
    )
    reconciler = Reconciler(
        store=store,
        queue=queue,
        gateway=gateway,
        connectivity=connectivity,
        broadcaster=broadcaster,
        max_attempts=settings.sync_max_attempts,
        retention=retention,
    )
    facade = RecordFacade(
        store=store,
        queue=queue,
        gateway=gateway,
        connectivity=connectivity,
        allowed_tables=settings.sync_tables,
        direct_writes=settings.direct_writes_enabled,
    )
    monitor = ConnectivityMonitor(
        connectivity=connectivity,
        reconciler=reconciler,
        gateway=gateway,
        owner_provider=lambda: session.owner_id,
    )

    return SyncRuntime(
        settings=settings,
        session=session,
        connectivity=connectivity,
        broadcaster=broadcaster,
        store=store,
        queue=queue,
        gateway=gateway,
        reconciler=reconciler,
        facade=facade,
        monitor=monitor,
        http_client=http_client,
    )
