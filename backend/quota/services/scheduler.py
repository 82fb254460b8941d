from __future__ import annotations

import asyncio
import logging
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .quota_manager import QuotaManager

logger = logging.getLogger(__name__)

ERROR_BACKOFF_SECONDS = 60


class QuotaCleanupScheduler:
    """Background scheduler that evicts expired quota snapshots."""

    def __init__(
        self,
        manager: "QuotaManager",
        interval_seconds: Optional[float] = None,
    ):
        self.manager = manager
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None else manager.settings.cleanup_ttl_seconds
        )
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the scheduler."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Quota cleanup scheduler started (interval: {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the scheduler."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Quota cleanup scheduler stopped")

    def run_once(self) -> int:
        removed = self.manager.cleanup()
        if removed:
            logger.info(f"Quota cleanup removed {removed} expired snapshot(s)")
        return removed

    async def _run_loop(self) -> None:
        """Main scheduler loop."""
        while self._running:
            try:
                await asyncio.sleep(self.interval_seconds)
                if self._running:
                    self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Scheduler error: {e}")
                await asyncio.sleep(min(ERROR_BACKOFF_SECONDS, self.interval_seconds))
