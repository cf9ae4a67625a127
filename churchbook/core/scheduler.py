"""
Periodic background synchronization with exponential backoff between passes
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from churchbook.core.exceptions import ChurchBookError
from churchbook.core.models import SyncResult


class SyncScheduler:
    """Runs sync passes on an interval while online"""

    def __init__(self, synchronizer, connectivity, interval_seconds: float = 30.0,
                 max_interval_seconds: float = 600.0):
        self.synchronizer = synchronizer
        self.connectivity = connectivity
        self.interval_seconds = interval_seconds
        self.max_interval_seconds = max(max_interval_seconds, interval_seconds)
        self.current_interval = interval_seconds
        self.is_running = False
        self.logger = logging.getLogger(__name__)
        self._task: Optional[asyncio.Task] = None

    def next_delay(self, result: Optional[SyncResult]) -> float:
        """Reset the wait after a clean pass, double it after a pass with failures"""
        if result is None or result.failed == 0:
            self.current_interval = self.interval_seconds
        else:
            self.current_interval = min(self.current_interval * 2, self.max_interval_seconds)
        return self.current_interval

    async def run_once(self) -> Optional[SyncResult]:
        """One scheduler tick; returns None when offline"""
        if not self.connectivity.is_online():
            return None
        return await self.synchronizer.sync()

    async def start(self):
        """Start the scheduler"""
        if self.is_running:
            return

        self.is_running = True
        self._task = asyncio.create_task(self._periodic_sync())
        self.logger.info(f"Sync scheduler started (every {self.interval_seconds}s)")

    async def stop(self):
        """Stop the scheduler"""
        self.is_running = False
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("Sync scheduler stopped")

    async def _periodic_sync(self):
        while self.is_running:
            result = None
            try:
                result = await self.run_once()
            except ChurchBookError as e:
                self.logger.error(f"Error in periodic sync: {e}")
                result = SyncResult(success=False, failed=1, errors=[str(e)])

            delay = self.next_delay(result)
            if result is not None and result.failed:
                self.logger.info(f"Next sync attempt in {delay:.0f}s")
            await asyncio.sleep(delay)

    def get_status(self) -> Dict[str, Any]:
        return {
            'is_running': self.is_running,
            'interval_seconds': self.interval_seconds,
            'current_interval_seconds': self.current_interval
        }
