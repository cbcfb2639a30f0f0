"""Worker manager for coordinating background tasks."""

import asyncio
import logging
from typing import Dict

from ..core.config import settings
from .base import BaseWorker
from .hold_reaper_worker import HoldReaperWorker

logger = logging.getLogger(__name__)


class WorkerManager:
    """Starts, stops and reports on the application's background workers."""

    def __init__(self):
        self.workers: Dict[str, BaseWorker] = {}
        self._setup_workers()

    def _setup_workers(self) -> None:
        if settings.hold_reaper_enabled:
            reaper = HoldReaperWorker(interval_seconds=settings.hold_reaper_interval_seconds)
            self.workers[reaper.name] = reaper

        logger.info("Initialized workers", extra={"workers": sorted(self.workers)})

    async def start_all(self) -> None:
        """Start all workers."""
        for name, worker in self.workers.items():
            try:
                await worker.start()
            except Exception:
                logger.error("Failed to start worker", exc_info=True, extra={"worker": name})

    async def stop_all(self) -> None:
        """Stop all workers gracefully."""
        names = list(self.workers)
        results = await asyncio.gather(
            *(worker.stop() for worker in self.workers.values()),
            return_exceptions=True,
        )
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.error("Error stopping worker", extra={"worker": name, "error": str(result)})

        logger.info("All workers stopped")

    def get_worker(self, name: str) -> BaseWorker:
        """
        Get a specific worker by name.

        Raises:
            KeyError: If worker not found
        """
        return self.workers[name]

    def get_worker_status(self) -> Dict[str, bool]:
        """Worker name to running flag."""
        return {name: worker.running for name, worker in self.workers.items()}


# Global worker manager instance
worker_manager = WorkerManager()
