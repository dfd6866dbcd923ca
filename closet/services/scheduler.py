"""
Expiry Scheduler - Periodic listing expiry sweep.

The catalog core has no wall-clock side effects; this task is the
external scheduler that drives ``CatalogStore.sweep_expired`` once per
configured interval on the running event loop.
"""

import asyncio
from datetime import datetime
from typing import Callable, List, Optional

from closet.core.catalog.models import utcnow
from closet.core.catalog.store import CatalogStore
from closet.core.config import MarketConfig
from closet.utils.logger import get_logger

logger = get_logger("scheduler")


class ExpiryScheduler:
    """
    Runs the expiry sweep in the background.

    Usage:
        scheduler = ExpiryScheduler(store, interval=60)
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        store: CatalogStore,
        interval: float = 60.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self.store = store
        self.interval = interval
        self.clock = clock
        self.sweeps = 0
        self.expired_total = 0
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(
        cls,
        store: CatalogStore,
        config: MarketConfig,
        clock: Callable[[], datetime] = utcnow,
    ) -> "ExpiryScheduler":
        return cls(store, interval=config.expiry_sweep_seconds, clock=clock)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> List[str]:
        """Sweep now. Returns ids expired by this sweep."""
        expired = self.store.sweep_expired(self.clock())
        self.sweeps += 1
        self.expired_total += len(expired)
        return expired

    async def _loop(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.run_once()
            except Exception:
                # Keep sweeping; a failed sweep committed nothing
                logger.exception("Expiry sweep failed")

    def start(self) -> asyncio.Task:
        """Start the background loop on the running event loop."""
        if self.running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info(f"Expiry scheduler started (every {self.interval}s)")
        return self._task

    async def stop(self):
        """Cancel the background loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Expiry scheduler stopped after {self.sweeps} sweep(s)")
