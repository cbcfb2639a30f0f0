"""Background worker that purges dead hold rows."""

import logging

from sqlalchemy import select

from ..core.clock import Clock, utcnow
from ..core.config import settings
from ..core.database import async_session_factory
from ..models.tenant import Tenant
from ..services.hold_service import HoldService
from .base import BaseWorker

logger = logging.getLogger(__name__)


class HoldReaperWorker(BaseWorker):
    """
    Deletes expired, consumed and released holds once they are older than
    the retention period, tenant by tenant.

    Hold validity never depends on this worker; it only keeps the table small.
    """

    def __init__(
        self,
        interval_seconds: int = 60,
        retention_seconds: int | None = None,
        batch_size: int = 500,
        session_factory=async_session_factory,
        clock: Clock = utcnow,
    ):
        super().__init__(name="hold_reaper", interval_seconds=interval_seconds)
        self.retention_seconds = (
            retention_seconds if retention_seconds is not None else settings.hold_retention_seconds
        )
        self.batch_size = batch_size
        self.session_factory = session_factory
        self.clock = clock

    async def process(self) -> int:
        """Purge one batch per tenant."""
        async with self.session_factory() as db:
            result = await db.execute(select(Tenant.id).order_by(Tenant.id))
            tenant_ids = list(result.scalars())

        purged = 0
        for tenant_id in tenant_ids:
            async with self.session_factory() as db:
                try:
                    hold_service = HoldService(db, clock=self.clock)
                    purged += await hold_service.purge_stale_holds(
                        tenant_id, self.retention_seconds, self.batch_size
                    )
                except Exception:
                    await db.rollback()
                    logger.error(
                        "Failed to purge holds for tenant",
                        exc_info=True,
                        extra={"worker": self.name, "tenant_id": tenant_id}
                    )

        if purged:
            logger.info(
                "Purged stale holds",
                extra={"worker": self.name, "purged_count": purged, "tenant_count": len(tenant_ids)}
            )
        return purged
