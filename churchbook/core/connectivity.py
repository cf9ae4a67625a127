"""
Connectivity tracking and the watcher that triggers a sync pass on reconnect
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from churchbook.core.exceptions import ChurchBookError
from churchbook.core.models import SyncResult

logger = logging.getLogger(__name__)

ConnectivityListener = Callable[[bool], None]
Probe = Callable[[], Awaitable[bool]]


class ConnectivityState(Enum):
    """Watcher states"""
    OFFLINE = "offline"
    ONLINE = "online"


class ConnectivityMonitor:
    """
    Connectivity signal with listener registration.

    The state changes through ``set_online`` (manual toggles, tests) or
    through an optional background probe started with ``start``. Listeners
    are called with the new state on every transition, never on repeats.
    """

    def __init__(self, initial_online: bool = True, probe: Optional[Probe] = None,
                 probe_interval: float = 15.0):
        self._online = initial_online
        self._probe = probe
        self.probe_interval = probe_interval
        self._listeners: List[ConnectivityListener] = []
        self._task: Optional[asyncio.Task] = None

    def is_online(self) -> bool:
        return self._online

    def add_listener(self, listener: ConnectivityListener) -> None:
        """Register a callback fired on online/offline transitions"""
        self._listeners.append(listener)

    def remove_listener(self, listener: ConnectivityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def set_online(self, online: bool) -> None:
        if online == self._online:
            return

        self._online = online
        logger.info(f"Connectivity changed: {'online' if online else 'offline'}")

        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception as e:
                logger.warning(f"Connectivity listener failed: {e}", exc_info=True)

    async def check(self) -> bool:
        """Run the probe once and publish the outcome"""
        if self._probe is None:
            return self._online

        try:
            online = bool(await self._probe())
        except Exception as e:
            logger.debug(f"Connectivity probe failed: {e}")
            online = False

        self.set_online(online)
        return online

    async def start(self) -> None:
        """Start the background probe loop"""
        if self._probe is None or self._task is not None:
            return

        async def probe_loop():
            while True:
                await self.check()
                await asyncio.sleep(self.probe_interval)

        self._task = asyncio.create_task(probe_loop())
        logger.info(f"Connectivity probe started (every {self.probe_interval}s)")

    async def stop(self) -> None:
        """Stop the background probe loop"""
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Connectivity probe stopped")


class ConnectivityWatcher:
    """
    Triggers exactly one sync pass per offline to online transition.

    While a pass started by the watcher is still running, further
    transitions do not start another one.
    """

    def __init__(self, connectivity: ConnectivityMonitor, synchronizer,
                 on_result: Optional[Callable[[SyncResult], None]] = None):
        self.connectivity = connectivity
        self.synchronizer = synchronizer
        self.on_result = on_result
        self.state = ConnectivityState.OFFLINE
        self.passes_started = 0
        self._task: Optional[asyncio.Task] = None
        self._registered = False

    def start(self) -> None:
        if self._registered:
            return

        self.state = ConnectivityState.ONLINE if self.connectivity.is_online() else ConnectivityState.OFFLINE
        self.connectivity.add_listener(self._on_connectivity_change)
        self._registered = True
        logger.debug(f"Connectivity watcher started in state {self.state.value}")

    def dispose(self) -> None:
        """Deregister from the connectivity signal"""
        if not self._registered:
            return

        self.connectivity.remove_listener(self._on_connectivity_change)
        self._registered = False
        logger.debug("Connectivity watcher disposed")

    async def __aenter__(self) -> 'ConnectivityWatcher':
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.dispose()
        await self.wait_idle()

    def _on_connectivity_change(self, online: bool) -> None:
        if not online:
            self.state = ConnectivityState.OFFLINE
            return

        if self.state is ConnectivityState.ONLINE:
            return

        self.state = ConnectivityState.ONLINE
        if self._task is not None and not self._task.done():
            logger.info("Back online, sync already in progress")
            return

        logger.info("Back online, syncing...")
        self.passes_started += 1
        self._task = asyncio.get_running_loop().create_task(self._run_sync())

    async def _run_sync(self) -> Optional[SyncResult]:
        try:
            result = await self.synchronizer.sync()
        except ChurchBookError as e:
            logger.error(f"Automatic sync failed: {e}", exc_info=True)
            return None
        except Exception as e:
            # Nobody awaits this task outside of tests
            logger.error(f"Automatic sync crashed: {e}", exc_info=True)
            return None

        if result.failed:
            logger.warning(f"Automatic sync left {result.failed} operations pending: {result.errors}")
        if self.on_result:
            try:
                self.on_result(result)
            except Exception as e:
                logger.warning(f"Sync result callback failed: {e}", exc_info=True)
        return result

    async def wait_idle(self) -> Optional[SyncResult]:
        """Wait for the pass started by the last transition, if any"""
        if self._task is None:
            return None
        return await self._task
