"""Hold token store: issue, extend, release and validate short-lived slot locks."""

import logging
import secrets
from datetime import date, datetime, timedelta
from typing import Iterable

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock, to_local, utcnow
from ..core.config import settings
from ..core.exceptions import (
    HoldTokenExpiredError,
    MaxExtensionExceededError,
    NotFoundError,
    ProblemDetailsException,
    SlotConflictError,
    ValidationError,
)
from ..core.observability import metrics_collector
from ..models.hold import HoldState, HoldToken
from ..schemas.hold import IssueHoldRequest
from ..scheduling.intervals import Interval
from .booking_rules import check_bookable, conflict_window
from .calendar_index import CalendarIndex
from .catalog_service import CatalogService, require_tenant
from .duration_price import DurationPriceResolver

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


class HoldService:
    """
    Issues and manages hold tokens.

    Validity is always computed from the stored expiry and the clock at the
    moment of use; nothing here depends on the reaper having run.
    """

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.catalog = CatalogService(db)
        self.calendar = CalendarIndex(db)
        self.resolver = DurationPriceResolver(db)

    def _generate_token(self) -> str:
        """Generate an opaque hold token."""
        return secrets.token_hex(TOKEN_BYTES)

    def _bounded_ttl(self, ttl_seconds: int | None) -> int:
        ttl = ttl_seconds if ttl_seconds is not None else settings.hold_ttl_seconds
        if not settings.hold_min_ttl_seconds <= ttl <= settings.hold_max_ttl_seconds:
            raise ValidationError(
                detail=(
                    f"ttl_seconds must be between {settings.hold_min_ttl_seconds} "
                    f"and {settings.hold_max_ttl_seconds}"
                ),
                errors={"ttl_seconds": ttl},
            )
        return ttl

    async def live_holds(
        self,
        tenant_id: int,
        resource_ids: Iterable[int],
        date_from: date,
        date_to: date,
        now: datetime | None = None,
        exclude_token: str | None = None,
    ) -> list[HoldToken]:
        """Holds that are neither expired, consumed nor released at ``now``."""
        require_tenant(tenant_id)
        ids = list(resource_ids)
        if not ids:
            return []
        now = now or self.clock()
        stmt = (
            select(HoldToken)
            .where(
                HoldToken.tenant_id == tenant_id,
                HoldToken.resource_id.in_(ids),
                HoldToken.hold_date >= date_from,
                HoldToken.hold_date <= date_to,
                HoldToken.consumed_at.is_(None),
                HoldToken.released_at.is_(None),
                HoldToken.expires_at > now,
            )
            .order_by(HoldToken.hold_date, HoldToken.start_time)
            .execution_options(populate_existing=True)
        )
        if exclude_token is not None:
            stmt = stmt.where(HoldToken.token != exclude_token)
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def find_hold_conflict(
        self,
        tenant_id: int,
        resource_id: int,
        interval: Interval,
        now: datetime,
        exclude_token: str | None = None,
    ) -> HoldToken | None:
        """Earliest live hold on the resource overlapping a same-day interval."""
        holds = await self.live_holds(
            tenant_id, [resource_id], interval.day, interval.day, now=now, exclude_token=exclude_token
        )
        overlapping = [hold for hold in holds if hold.interval.overlaps(interval)]
        return overlapping[0] if overlapping else None

    async def issue(
        self,
        tenant_id: int,
        resource_id: int,
        interval: Interval,
        ttl_seconds: int | None = None,
        menu_id: int | None = None,
        option_ids: Iterable[int] = (),
        customer_id: int | None = None,
    ) -> HoldToken:
        """
        Issue a hold on a resource interval.

        The resource row is locked before the overlap checks, so the check and
        the insert commit as one unit.

        Raises:
            SlotConflictError: If a pending/confirmed booking or another live hold overlaps
            NotFoundError: If the resource is not the tenant's
        """
        require_tenant(tenant_id)
        ttl = self._bounded_ttl(ttl_seconds)
        if not interval.within_single_day():
            raise ValidationError(detail="A hold must start and end on the same date")

        try:
            await self.catalog.lock_resources(tenant_id, [resource_id])
            now = self.clock()

            booking = await self.calendar.find_booking_conflict(tenant_id, resource_id, interval)
            if booking is not None:
                metrics_collector.record_hold_conflict("booking")
                raise SlotConflictError(conflict_window(booking.interval, resource_id, "booking"))

            held = await self.find_hold_conflict(tenant_id, resource_id, interval, now)
            if held is not None:
                metrics_collector.record_hold_conflict("hold")
                raise SlotConflictError(conflict_window(held.interval, resource_id, "hold"))

            hold = HoldToken(
                token=self._generate_token(),
                tenant_id=tenant_id,
                resource_id=resource_id,
                menu_id=menu_id,
                customer_id=customer_id,
                option_ids=sorted(set(option_ids)),
                hold_date=interval.day,
                start_time=interval.start.time(),
                end_time=interval.end.time(),
                issued_at=now,
                expires_at=now + timedelta(seconds=ttl),
            )
            self.db.add(hold)
            await self.db.commit()

        except ProblemDetailsException as e:
            await self.db.rollback()
            logger.warning(
                "Hold issuance rejected",
                extra={
                    "tenant_id": tenant_id,
                    "resource_id": resource_id,
                    "interval": interval.as_window(),
                    "code": e.code,
                }
            )
            raise

        await self.db.refresh(hold)
        metrics_collector.record_hold_issued()

        logger.info(
            "Hold issued",
            extra={
                "tenant_id": tenant_id,
                "hold_id": str(hold.id),
                "resource_id": resource_id,
                "interval": interval.as_window(),
                "expires_at": hold.expires_at.isoformat(),
            }
        )
        return hold

    async def issue_hold(self, tenant_id: int, request: IssueHoldRequest) -> HoldToken:
        """
        Hold the slot a client picked: resolve the interval from the menu
        selection, check business hours, then issue.

        Raises:
            OutsideBusinessHoursError: If the slot is outside the resource's working window
            SlotConflictError: If the slot is taken
        """
        require_tenant(tenant_id)
        tenant = await self.catalog.get_tenant_or_raise(tenant_id)
        menu = await self.catalog.get_menu_or_raise(tenant_id, request.menu_id)
        resource = await self.catalog.get_eligible_resource_or_raise(tenant_id, menu, request.resource_id)
        if request.customer_id is not None:
            await self.catalog.get_customer_or_raise(tenant_id, request.customer_id)

        quote = await self.resolver.resolve(
            tenant_id, menu.id, request.option_ids, menu=menu, resource=resource
        )
        interval = Interval.starting_at(request.booking_date, request.start_time, quote.total_duration)

        schedule = await self.calendar.load_schedule(tenant_id, request.booking_date, request.booking_date)
        check_bookable(
            tenant, menu, schedule, interval, to_local(self.clock(), tenant.timezone), resource.id
        )

        return await self.issue(
            tenant_id,
            resource.id,
            interval,
            ttl_seconds=request.ttl_seconds,
            menu_id=menu.id,
            option_ids=quote.option_ids,
            customer_id=request.customer_id,
        )

    async def get_hold_by_token(self, tenant_id: int, token: str) -> HoldToken | None:
        """Get a hold of the tenant by token, in any state."""
        require_tenant(tenant_id)
        stmt = (
            select(HoldToken)
            .where(HoldToken.tenant_id == tenant_id, HoldToken.token == token)
            # Guarded UPDATEs bypass the identity map
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_hold(self, tenant_id: int, token: str) -> HoldToken:
        """Get a hold of the tenant by token or raise NotFoundError."""
        hold = await self.get_hold_by_token(tenant_id, token)
        if not hold:
            raise NotFoundError(resource_type="hold", resource_id=token[:8] + "...")
        return hold

    async def is_valid(self, tenant_id: int, token: str) -> bool:
        """True iff the token exists in the tenant, is unconsumed, unreleased and unexpired now."""
        hold = await self.get_hold_by_token(tenant_id, token)
        return hold is not None and hold.is_live(self.clock())

    async def extend(self, tenant_id: int, token: str, additional_seconds: int | None = None) -> HoldToken:
        """
        Push a live hold's expiry back.

        Raises:
            HoldTokenExpiredError: If the token is unknown or no longer live
            MaxExtensionExceededError: If the new expiry passes the maximum lifetime
        """
        require_tenant(tenant_id)
        additional = additional_seconds if additional_seconds is not None else settings.hold_extension_seconds
        if additional <= 0:
            raise ValidationError(detail="additional_seconds must be positive")

        now = self.clock()
        hold = await self.get_hold_by_token(tenant_id, token)
        if hold is None or not hold.is_live(now):
            metrics_collector.record_hold_extension("expired")
            expired_at = hold.expires_at if hold is not None and hold.state(now) is HoldState.EXPIRED else None
            raise HoldTokenExpiredError(token, expired_at)

        new_expiry = hold.expires_at + timedelta(seconds=additional)
        max_expiry = hold.issued_at + timedelta(seconds=settings.hold_max_lifetime_seconds)
        if new_expiry > max_expiry:
            metrics_collector.record_hold_extension("max_exceeded")
            raise MaxExtensionExceededError(token, max_expiry)

        # Compare-and-set on the expiry we read
        stmt = (
            update(HoldToken)
            .where(
                HoldToken.id == hold.id,
                HoldToken.expires_at == hold.expires_at,
                HoldToken.consumed_at.is_(None),
                HoldToken.released_at.is_(None),
                HoldToken.expires_at > now,
            )
            .values(expires_at=new_expiry, extension_count=HoldToken.extension_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            await self.db.rollback()
            metrics_collector.record_hold_extension("expired")
            raise HoldTokenExpiredError(token)

        await self.db.commit()
        await self.db.refresh(hold)
        metrics_collector.record_hold_extension("extended")

        logger.info(
            "Hold extended",
            extra={
                "tenant_id": tenant_id,
                "hold_id": str(hold.id),
                "expires_at": hold.expires_at.isoformat(),
                "extension_count": hold.extension_count,
            }
        )
        return hold

    async def release(self, tenant_id: int, token: str) -> bool:
        """
        Release a hold. Idempotent: unknown, expired, consumed or already
        released tokens are left untouched and no error is raised.

        Returns:
            True if this call released a live hold
        """
        require_tenant(tenant_id)
        now = self.clock()
        stmt = (
            update(HoldToken)
            .where(
                HoldToken.tenant_id == tenant_id,
                HoldToken.token == token,
                HoldToken.consumed_at.is_(None),
                HoldToken.released_at.is_(None),
                HoldToken.expires_at > now,
            )
            .values(released_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        released = result.rowcount == 1
        await self.db.commit()

        if released:
            metrics_collector.record_hold_released()
            logger.info("Hold released", extra={"tenant_id": tenant_id, "token_prefix": token[:8]})
        else:
            logger.debug("Hold release was a no-op", extra={"tenant_id": tenant_id, "token_prefix": token[:8]})
        return released

    async def consume(self, tenant_id: int, hold: HoldToken, now: datetime) -> None:
        """
        Mark a live hold consumed inside the caller's transaction.

        Raises:
            HoldTokenExpiredError: If the hold stopped being live in the meantime
        """
        stmt = (
            update(HoldToken)
            .where(
                HoldToken.tenant_id == tenant_id,
                HoldToken.id == hold.id,
                HoldToken.consumed_at.is_(None),
                HoldToken.released_at.is_(None),
                HoldToken.expires_at > now,
            )
            .values(consumed_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount != 1:
            raise HoldTokenExpiredError(hold.token, hold.expires_at if now >= hold.expires_at else None)

    async def list_active_holds(self, tenant_id: int, day: date | None = None) -> list[HoldToken]:
        """Live holds of the tenant, optionally limited to one date."""
        require_tenant(tenant_id)
        now = self.clock()
        stmt = (
            select(HoldToken)
            .where(
                HoldToken.tenant_id == tenant_id,
                HoldToken.consumed_at.is_(None),
                HoldToken.released_at.is_(None),
                HoldToken.expires_at > now,
            )
            .order_by(HoldToken.hold_date, HoldToken.start_time, HoldToken.resource_id)
        )
        if day is not None:
            stmt = stmt.where(HoldToken.hold_date == day)
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def purge_stale_holds(
        self,
        tenant_id: int,
        retention_seconds: int | None = None,
        batch_size: int = 500,
    ) -> int:
        """
        Delete hold rows that have been dead for longer than the retention period.

        Storage hygiene only; validity never depends on this having run.

        Returns:
            Number of rows deleted
        """
        require_tenant(tenant_id)
        retention = retention_seconds if retention_seconds is not None else settings.hold_retention_seconds
        cutoff = self.clock() - timedelta(seconds=retention)

        stmt = (
            select(HoldToken.id)
            .where(
                HoldToken.tenant_id == tenant_id,
                or_(
                    HoldToken.expires_at < cutoff,
                    HoldToken.consumed_at < cutoff,
                    HoldToken.released_at < cutoff,
                ),
            )
            .limit(batch_size)
        )
        result = await self.db.execute(stmt)
        stale_ids = list(result.scalars())
        if not stale_ids:
            return 0

        await self.db.execute(
            delete(HoldToken)
            .where(HoldToken.tenant_id == tenant_id, HoldToken.id.in_(stale_ids))
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        metrics_collector.record_holds_purged(len(stale_ids))
        logger.info(
            "Purged stale holds",
            extra={"tenant_id": tenant_id, "purged_count": len(stale_ids), "cutoff": cutoff.isoformat()}
        )
        return len(stale_ids)
