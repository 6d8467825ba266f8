"""Connectivity monitor — runs one reconciliation pass per connectivity transition."""

import asyncio
import logging
from collections.abc import Callable

from notesync.application.interfaces import RemoteGateway
from notesync.application.services.reconciler import Reconciler
from notesync.domain.entities import ConnectivityState, SyncResult

logger = logging.getLogger(__name__)

OwnerProvider = Callable[[], str | None]


class ConnectivityMonitor:
    """Turns offline→online (and process start) transitions into sync passes.

    At most one pass runs at a time. Triggers that arrive while a pass is
    in flight are coalesced into a single follow-up pass. Each pass is an
    ``asyncio.Task`` so callers can await it with ``wait_idle()``.
    """

    def __init__(
        self,
        connectivity: ConnectivityState,
        reconciler: Reconciler,
        gateway: RemoteGateway,
        owner_provider: OwnerProvider,
    ):
        self._connectivity = connectivity
        self._reconciler = reconciler
        self._gateway = gateway
        self._owner_provider = owner_provider
        self._task: asyncio.Task | None = None
        self._rerun = False
        self._started = False
        self.last_result: SyncResult | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task | None:
        """Begin listening; schedules the start-up pass when already online."""
        if not self._started:
            self._connectivity.add_listener(self._on_change)
            self._started = True
        if self._connectivity.is_online:
            return self.trigger()
        return None

    def set_online(self, online: bool) -> bool:
        """Report a connectivity change. Returns True on an actual transition."""
        return self._connectivity.set_online(online)

    def trigger(self, probe: bool = True) -> asyncio.Task:
        """Schedule a pass, or fold the request into the one in flight."""
        if self.is_running:
            self._rerun = True
            return self._task
        self._rerun = False
        self._task = asyncio.get_running_loop().create_task(self._run(probe))
        return self._task

    async def sync_now(self) -> SyncResult | None:
        """Run (or join) a pass without probing and return its result."""
        self.trigger(probe=False)
        await self.wait_idle()
        return self.last_result

    async def wait_idle(self) -> None:
        """Wait until no pass is running, follow-up passes included."""
        while self._task is not None and not self._task.done():
            await asyncio.shield(self._task)

    async def stop(self) -> None:
        if self._started:
            self._connectivity.remove_listener(self._on_change)
            self._started = False
        task, self._task = self._task, None
        self._rerun = False
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def _on_change(self, online: bool) -> None:
        if online and self._started:
            self.trigger()

    async def _run(self, probe: bool) -> None:
        while True:
            try:
                await self._run_once(probe)
            except Exception:
                # Reconciler handles per-entry failures; this is storage or wiring.
                logger.exception("Reconciliation pass crashed")
            if not self._rerun:
                return
            self._rerun = False

    async def _run_once(self, probe: bool) -> None:
        owner_id = self._owner_provider()
        if not owner_id:
            logger.debug("No signed-in owner — skipping sync pass")
            return

        if probe:
            health = await self._gateway.health_check()
            if not health.ok:
                logger.info("Remote unreachable — staying offline")
                self._connectivity.set_online(False)
                return

        self.last_result = await self._reconciler.reconcile(owner_id)
        logger.info("Sync pass finished: %s", self.last_result.as_signal())
