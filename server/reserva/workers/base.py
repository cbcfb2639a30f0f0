"""Base worker class for periodic background tasks."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

from ..core.observability import metrics_collector

logger = logging.getLogger(__name__)


class BaseWorker(ABC):
    """
    Abstract base class for background workers.

    Subclasses implement ``process``; the loop runs it every
    ``interval_seconds`` and keeps going after failures.
    """

    def __init__(self, name: str, interval_seconds: int = 60):
        self.name = name
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    @abstractmethod
    async def process(self) -> int:
        """Process one iteration; returns the number of items handled."""

    async def start(self) -> None:
        """Start the worker."""
        if self._running:
            logger.warning("Worker is already running", extra={"worker": self.name})
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(
            "Worker started",
            extra={"worker": self.name, "interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the worker gracefully."""
        if not self._running:
            return

        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                logger.debug("Worker task cancelled", extra={"worker": self.name})
            self._task = None

        logger.info("Worker stopped", extra={"worker": self.name})

    async def run_once(self) -> int:
        """Run one iteration and record it."""
        started = time.monotonic()
        handled = await self.process()
        metrics_collector.record_worker_run(self.name, time.time())
        logger.debug(
            "Worker iteration completed",
            extra={
                "worker": self.name,
                "handled": handled,
                "duration_seconds": round(time.monotonic() - started, 3),
            }
        )
        return handled

    async def _run(self) -> None:
        """Main worker loop."""
        while self._running:
            started = time.monotonic()
            try:
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.error("Worker iteration failed", exc_info=True, extra={"worker": self.name})

            await asyncio.sleep(max(0.0, self.interval_seconds - (time.monotonic() - started)))
