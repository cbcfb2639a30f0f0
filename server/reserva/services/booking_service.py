"""Booking conflict resolution: the authoritative commit and the booking lifecycle."""

import logging
import secrets
import string
from datetime import date, datetime, time
from uuid import UUID

from opentelemetry import trace
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.clock import Clock, to_local, utcnow
from ..core.exceptions import (
    BookingConflictError,
    HoldTokenExpiredError,
    InvalidBookingTransitionError,
    NotFoundError,
    ProblemDetailsException,
    ValidationError,
)
from ..core.observability import metrics_collector
from ..models.booking import ACTIVE_BOOKING_STATUSES, Booking, BookingOption, BookingStatus
from ..models.hold import HoldToken
from ..models.menu import Menu
from ..models.resource import Resource
from ..models.tenant import Tenant
from ..schemas.booking import CommitBookingRequest
from ..scheduling.intervals import Interval
from ..scheduling.resource_ref import Assigned, ResourceRef, resource_ref
from .booking_rules import check_bookable, conflict_window
from .calendar_index import CalendarIndex
from .catalog_service import CatalogService, require_tenant
from .duration_price import DurationPriceResolver
from .hold_service import HoldService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

BOOKING_NUMBER_LENGTH = 8

OVERLAP_CONSTRAINT = "ex_bookings_no_overlap"
EXCLUSION_VIOLATION = "23P01"


def is_overlap_violation(error: IntegrityError) -> bool:
    """Whether a storage error is the booking exclusion constraint firing."""
    orig = getattr(error, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode == EXCLUSION_VIOLATION:
        return True
    return OVERLAP_CONSTRAINT in str(orig)


class BookingConflictResolver:
    """
    Commits bookings and moves them through their lifecycle.

    A commit validates business hours, locks the candidate resource rows,
    re-checks overlap against pending/confirmed bookings and live holds,
    verifies the hold token when one is given, then inserts the booking and
    consumes the token in the same transaction.
    """

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.catalog = CatalogService(db)
        self.calendar = CalendarIndex(db)
        self.resolver = DurationPriceResolver(db)
        self.holds = HoldService(db, clock=clock)

    def _generate_booking_number(self, length: int = BOOKING_NUMBER_LENGTH) -> str:
        """Generate a random booking number."""
        alphabet = string.ascii_uppercase + string.digits
        return ''.join(secrets.choice(alphabet) for _ in range(length))

    async def _unique_booking_number(self, tenant_id: int) -> str:
        booking_number = self._generate_booking_number()
        while await self.get_booking_by_number(tenant_id, booking_number):
            booking_number = self._generate_booking_number()
        return booking_number

    async def _resolve_token(self, tenant_id: int, token: str | None, resource: ResourceRef) -> tuple[HoldToken | None, ResourceRef]:
        """Load the hold a commit refers to; an unassigned commit adopts the held resource."""
        if token is None:
            return None, resource
        hold = await self.holds.get_hold_by_token(tenant_id, token)
        if hold is not None and not isinstance(resource, Assigned):
            resource = Assigned(hold.resource_id)
        return hold, resource

    async def _candidate_resources(self, tenant_id: int, menu: Menu, resource: ResourceRef) -> list[Resource]:
        if isinstance(resource, Assigned):
            return [await self.catalog.get_eligible_resource_or_raise(tenant_id, menu, resource.resource_id)]
        resources = await self.catalog.list_eligible_resources(tenant_id, menu)
        if not resources:
            raise BookingConflictError(detail="No resource can serve this menu")
        return resources

    async def _check_hours(
        self,
        tenant: Tenant,
        menu: Menu,
        interval: Interval,
        candidates: list[Resource],
    ) -> list[Resource]:
        """Candidates whose working window admits the interval; raises if none does."""
        schedule = await self.calendar.load_schedule(tenant.id, interval.day, interval.day)
        local_now = to_local(self.clock(), tenant.timezone)
        if len(candidates) == 1:
            check_bookable(tenant, menu, schedule, interval, local_now, candidates[0].id)
            return candidates

        # Tenant-level checks first, then drop resources that do not work then
        check_bookable(tenant, menu, schedule, interval, local_now)
        working = []
        for resource in candidates:
            window = schedule.working_window(interval.day, resource.id)
            if window is not None and window.contains(interval):
                working.append(resource)
        if not working:
            check_bookable(tenant, menu, schedule, interval, local_now, candidates[0].id)
        return working

    async def _free_resource(
        self,
        tenant_id: int,
        candidates: list[Resource],
        interval: Interval,
        now: datetime,
        token: str | None,
    ) -> Resource:
        """
        First candidate with neither an overlapping booking nor another token's live hold.

        Raises:
            BookingConflictError: With the window that blocked the last candidate
        """
        blocking = None
        for resource in candidates:
            booking = await self.calendar.find_booking_conflict(tenant_id, resource.id, interval)
            if booking is not None:
                blocking = conflict_window(booking.interval, resource.id, "booking")
                continue
            held = await self.holds.find_hold_conflict(
                tenant_id, resource.id, interval, now, exclude_token=token
            )
            if held is not None:
                blocking = conflict_window(held.interval, resource.id, "hold")
                continue
            return resource

        if len(candidates) > 1:
            raise BookingConflictError(
                blocking,
                detail="No eligible resource is free for the requested time",
            )
        raise BookingConflictError(blocking)

    def _check_token(
        self,
        token: str,
        hold: HoldToken | None,
        resource: Resource,
        interval: Interval,
        now: datetime,
    ) -> None:
        """The token must be live and cover the same resource, date and start."""
        if hold is None:
            raise HoldTokenExpiredError(token)
        if not hold.is_live(now):
            expired_at = hold.expires_at if now >= hold.expires_at else None
            raise HoldTokenExpiredError(token, expired_at)
        if (
            hold.resource_id != resource.id
            or hold.hold_date != interval.day
            or hold.start_time != interval.start.time()
        ):
            raise HoldTokenExpiredError(
                token,
                detail="Hold token does not cover the requested resource and start time",
            )

    async def commit_booking(self, tenant_id: int, request: CommitBookingRequest) -> Booking:
        """
        Commit a booking, directly or from a hold token.

        The overlap check and the insert happen under the candidate resources'
        row locks, so of two concurrent commits on overlapping intervals of one
        resource at most one succeeds.

        Args:
            tenant_id: Tenant scope
            request: Booking request; ``resource_id`` omitted means auto-assign

        Returns:
            The committed booking with its option lines

        Raises:
            OutsideBusinessHoursError: If the interval is outside the working window
            BookingConflictError: If a booking or another live hold overlaps the interval
            HoldTokenExpiredError: If the token is unknown, not live or does not match
        """
        require_tenant(tenant_id)
        with tracer.start_as_current_span("booking.commit") as span:
            span.set_attribute("reserva.tenant_id", tenant_id)
            span.set_attribute("reserva.from_hold", request.hold_token is not None)
            booking = await self._commit(tenant_id, request)
            span.set_attribute("reserva.booking_status", booking.status)
        return booking

    async def _commit(self, tenant_id: int, request: CommitBookingRequest) -> Booking:
        from_hold = request.hold_token is not None

        try:
            tenant = await self.catalog.get_tenant_or_raise(tenant_id)
            menu = await self.catalog.get_menu_or_raise(tenant_id, request.menu_id)
            await self.catalog.get_customer_or_raise(tenant_id, request.customer_id)

            hold, resource = await self._resolve_token(
                tenant_id, request.hold_token, resource_ref(request.resource_id)
            )
            candidates = await self._candidate_resources(tenant_id, menu, resource)

            option_ids = request.option_ids
            if hold is not None and not option_ids:
                option_ids = list(hold.option_ids or [])

            # Duration never depends on the resource
            base_quote = await self.resolver.resolve(tenant_id, menu.id, option_ids, menu=menu)
            interval = Interval.starting_at(request.booking_date, request.start_time, base_quote.total_duration)

            candidates = await self._check_hours(tenant, menu, interval, candidates)

            await self.catalog.lock_resources(tenant_id, [candidate.id for candidate in candidates])
            now = self.clock()

            chosen = await self._free_resource(tenant_id, candidates, interval, now, request.hold_token)

            if request.hold_token is not None:
                self._check_token(request.hold_token, hold, chosen, interval, now)

            quote = await self.resolver.resolve(
                tenant_id, menu.id, option_ids, menu=menu, resource=chosen
            )

            confirmed = request.auto_approve and not menu.require_approval
            booking = Booking(
                tenant_id=tenant_id,
                booking_number=await self._unique_booking_number(tenant_id),
                customer_id=request.customer_id,
                menu_id=menu.id,
                resource_id=chosen.id,
                booking_date=interval.day,
                start_time=interval.start.time(),
                end_time=interval.end.time(),
                duration_minutes=quote.total_duration,
                total_price=quote.total_price,
                status=BookingStatus.CONFIRMED.value if confirmed else BookingStatus.PENDING.value,
                hold_token=request.hold_token,
                notes=request.notes,
            )
            booking.options = [
                BookingOption(
                    menu_option_id=line.option_id,
                    name=line.name,
                    price=line.amount,
                    duration_minutes=line.duration_minutes,
                )
                for line in quote.option_lines
            ]
            self.db.add(booking)

            if hold is not None:
                await self.holds.consume(tenant_id, hold, now)

            await self.db.flush()
            await self.db.commit()

        except ProblemDetailsException as e:
            await self.db.rollback()
            metrics_collector.record_booking_rejected(e.code)
            logger.warning(
                "Booking commit rejected",
                extra={
                    "tenant_id": tenant_id,
                    "menu_id": request.menu_id,
                    "resource_id": request.resource_id,
                    "booking_date": request.booking_date.isoformat(),
                    "start_time": request.start_time.isoformat(),
                    "from_hold": from_hold,
                    "code": e.code,
                }
            )
            raise

        except IntegrityError as e:
            await self.db.rollback()
            if not is_overlap_violation(e):
                logger.error(
                    "Booking commit failed on a storage constraint",
                    extra={"tenant_id": tenant_id, "menu_id": request.menu_id, "error": str(e.orig)}
                )
                raise
            metrics_collector.record_booking_rejected("BOOKING_CONFLICT")
            logger.warning(
                "Booking commit hit the overlap constraint",
                extra={"tenant_id": tenant_id, "menu_id": request.menu_id, "error": str(e.orig)}
            )
            raise BookingConflictError(
                detail="The requested time was booked concurrently",
            ) from e

        booking = await self.get_booking_by_id_or_raise(tenant_id, booking.id)
        metrics_collector.record_booking_committed(booking.status, from_hold)

        logger.info(
            "Booking committed",
            extra={
                "tenant_id": tenant_id,
                "booking_id": str(booking.id),
                "booking_number": booking.booking_number,
                "resource_id": booking.resource_id,
                "interval": booking.interval.as_window(),
                "status": booking.status,
                "total_price": booking.total_price,
                "from_hold": from_hold,
            }
        )
        return booking

    async def reschedule_booking(
        self,
        tenant_id: int,
        booking_id: UUID,
        booking_date: date,
        start_time: time,
        option_ids: list[int] | None = None,
        resource_id: int | None = None,
    ) -> Booking:
        """
        Move a pending or confirmed booking to a new start, resource or option set.

        The booking's own interval never blocks the move. Duration and price
        are quoted again and the option lines rewritten, all in one transaction
        under the target resource's row lock.

        Args:
            tenant_id: Tenant scope
            booking_id: Booking to move
            booking_date: New date (tenant local)
            start_time: New start time (tenant local)
            option_ids: New option selection; None keeps the current options
            resource_id: New resource; None keeps the current one

        Raises:
            NotFoundError: If the booking is not the tenant's
            InvalidBookingTransitionError: If the booking is no longer pending or confirmed
            OutsideBusinessHoursError: If the new interval is outside the working window
            BookingConflictError: If another booking or a live hold overlaps the new interval
        """
        require_tenant(tenant_id)
        booking = await self.get_booking_by_id_or_raise(tenant_id, booking_id)
        current = BookingStatus(booking.status)
        if booking.deleted_at is not None or current.value not in ACTIVE_BOOKING_STATUSES:
            raise InvalidBookingTransitionError(
                str(booking.id),
                current.value,
                current.value,
                detail=f"Booking {booking.id} is {current.value} and cannot be rescheduled",
            )

        if option_ids is None:
            option_ids = [line.menu_option_id for line in booking.options if line.menu_option_id is not None]
        previous = booking.interval.as_window()

        try:
            tenant = await self.catalog.get_tenant_or_raise(tenant_id)
            menu = await self.catalog.get_menu_or_raise(tenant_id, booking.menu_id)
            resource = await self.catalog.get_eligible_resource_or_raise(
                tenant_id, menu, resource_id or booking.resource_id
            )

            base_quote = await self.resolver.resolve(tenant_id, menu.id, option_ids, menu=menu)
            interval = Interval.starting_at(booking_date, start_time, base_quote.total_duration)
            await self._check_hours(tenant, menu, interval, [resource])

            await self.catalog.lock_resources(tenant_id, [resource.id])
            now = self.clock()

            other = await self.calendar.find_booking_conflict(
                tenant_id, resource.id, interval, exclude_booking_id=booking.id
            )
            if other is not None:
                raise BookingConflictError(conflict_window(other.interval, resource.id, "booking"))
            held = await self.holds.find_hold_conflict(tenant_id, resource.id, interval, now)
            if held is not None:
                raise BookingConflictError(conflict_window(held.interval, resource.id, "hold"))

            quote = await self.resolver.resolve(tenant_id, menu.id, option_ids, menu=menu, resource=resource)

            booking.resource_id = resource.id
            booking.booking_date = interval.day
            booking.start_time = interval.start.time()
            booking.end_time = interval.end.time()
            booking.duration_minutes = quote.total_duration
            booking.total_price = quote.total_price
            booking.options = [
                BookingOption(
                    menu_option_id=line.option_id,
                    name=line.name,
                    price=line.amount,
                    duration_minutes=line.duration_minutes,
                )
                for line in quote.option_lines
            ]

            await self.db.flush()
            await self.db.commit()

        except ProblemDetailsException as e:
            await self.db.rollback()
            metrics_collector.record_booking_rejected(e.code)
            logger.warning(
                "Booking reschedule rejected",
                extra={
                    "tenant_id": tenant_id,
                    "booking_id": str(booking_id),
                    "booking_date": booking_date.isoformat(),
                    "start_time": start_time.isoformat(),
                    "code": e.code,
                }
            )
            raise

        except IntegrityError as e:
            await self.db.rollback()
            if not is_overlap_violation(e):
                logger.error(
                    "Booking reschedule failed on a storage constraint",
                    extra={"tenant_id": tenant_id, "booking_id": str(booking_id), "error": str(e.orig)}
                )
                raise
            metrics_collector.record_booking_rejected("BOOKING_CONFLICT")
            raise BookingConflictError(
                detail="The requested time was booked concurrently",
            ) from e

        booking = await self.get_booking_by_id_or_raise(tenant_id, booking_id)
        metrics_collector.record_booking_transition("rescheduled")
        logger.info(
            "Booking rescheduled",
            extra={
                "tenant_id": tenant_id,
                "booking_id": str(booking.id),
                "booking_number": booking.booking_number,
                "from": previous,
                "to": booking.interval.as_window(),
                "resource_id": booking.resource_id,
                "total_price": booking.total_price,
            }
        )
        return booking

    async def _transition(
        self,
        tenant_id: int,
        booking_id: UUID,
        to_status: BookingStatus,
        allowed_from: tuple[BookingStatus, ...],
        after_start: bool = False,
    ) -> Booking:
        booking = await self.get_booking_by_id_or_raise(tenant_id, booking_id)
        if booking.deleted_at is not None or BookingStatus(booking.status) not in allowed_from:
            raise InvalidBookingTransitionError(str(booking.id), BookingStatus(booking.status).value, to_status.value)
        if after_start:
            await self._after_start(tenant_id, booking, to_status)
        booking.status = to_status.value
        return booking

    async def _save_transition(self, tenant_id: int, booking: Booking, to_status: BookingStatus) -> Booking:
        await self.db.commit()
        booking = await self.get_booking_by_id_or_raise(tenant_id, booking.id)
        metrics_collector.record_booking_transition(to_status.value)
        logger.info(
            "Booking status changed",
            extra={
                "tenant_id": tenant_id,
                "booking_id": str(booking.id),
                "booking_number": booking.booking_number,
                "status": to_status.value,
            }
        )
        return booking

    async def cancel_booking(self, tenant_id: int, booking_id: UUID, reason: str | None = None) -> Booking:
        """
        Cancel a pending or confirmed booking, freeing its interval.

        Cancelling an already cancelled booking returns it unchanged.

        Raises:
            NotFoundError: If the booking is not the tenant's
            InvalidBookingTransitionError: If the booking is completed or a no-show
        """
        require_tenant(tenant_id)
        booking = await self.get_booking_by_id_or_raise(tenant_id, booking_id)

        if booking.status == BookingStatus.CANCELLED.value:
            logger.info(
                "Booking already cancelled - returning existing booking",
                extra={"tenant_id": tenant_id, "booking_id": str(booking_id)}
            )
            return booking

        booking = await self._transition(
            tenant_id, booking_id, BookingStatus.CANCELLED, (BookingStatus.PENDING, BookingStatus.CONFIRMED)
        )
        booking.cancelled_at = self.clock()
        booking.cancellation_reason = reason
        return await self._save_transition(tenant_id, booking, BookingStatus.CANCELLED)

    async def approve_booking(self, tenant_id: int, booking_id: UUID) -> Booking:
        """Confirm a pending booking."""
        require_tenant(tenant_id)
        booking = await self._transition(tenant_id, booking_id, BookingStatus.CONFIRMED, (BookingStatus.PENDING,))
        return await self._save_transition(tenant_id, booking, BookingStatus.CONFIRMED)

    async def _after_start(self, tenant_id: int, booking: Booking, to_status: BookingStatus) -> None:
        tenant = await self.catalog.get_tenant_or_raise(tenant_id)
        local_now = to_local(self.clock(), tenant.timezone)
        if local_now < booking.interval.start:
            raise InvalidBookingTransitionError(
                str(booking.id),
                BookingStatus(booking.status).value,
                to_status.value,
                detail=f"Booking {booking.id} has not started yet",
            )

    async def complete_booking(self, tenant_id: int, booking_id: UUID) -> Booking:
        """Mark a confirmed booking completed once its start time has passed."""
        require_tenant(tenant_id)
        booking = await self._transition(
            tenant_id, booking_id, BookingStatus.COMPLETED, (BookingStatus.CONFIRMED,), after_start=True
        )
        booking.completed_at = self.clock()
        return await self._save_transition(tenant_id, booking, BookingStatus.COMPLETED)

    async def mark_no_show(self, tenant_id: int, booking_id: UUID) -> Booking:
        """Mark a confirmed booking as a no-show once its start time has passed."""
        require_tenant(tenant_id)
        booking = await self._transition(
            tenant_id, booking_id, BookingStatus.NO_SHOW, (BookingStatus.CONFIRMED,), after_start=True
        )
        booking.completed_at = self.clock()
        return await self._save_transition(tenant_id, booking, BookingStatus.NO_SHOW)

    async def soft_delete_booking(self, tenant_id: int, booking_id: UUID) -> None:
        """Hide a booking from lists and availability without removing the row."""
        require_tenant(tenant_id)
        booking = await self.get_booking_by_id_or_raise(tenant_id, booking_id)
        if booking.deleted_at is None:
            booking.deleted_at = self.clock()
            await self.db.commit()
            logger.info(
                "Booking deleted",
                extra={"tenant_id": tenant_id, "booking_id": str(booking_id)}
            )

    async def get_booking(self, tenant_id: int, booking_id: UUID) -> Booking:
        """Get a booking of the tenant by ID."""
        require_tenant(tenant_id)
        return await self.get_booking_by_id_or_raise(tenant_id, booking_id)

    async def get_booking_by_id(self, tenant_id: int, booking_id: UUID) -> Booking | None:
        """Get booking by ID, including soft-deleted ones."""
        stmt = (
            select(Booking)
            .options(selectinload(Booking.options))
            .where(Booking.tenant_id == tenant_id, Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_booking_by_id_or_raise(self, tenant_id: int, booking_id: UUID) -> Booking:
        """Get booking by ID or raise NotFoundError."""
        booking = await self.get_booking_by_id(tenant_id, booking_id)
        if not booking:
            logger.warning(
                "Booking not found",
                extra={"tenant_id": tenant_id, "booking_id": str(booking_id)}
            )
            raise NotFoundError(
                resource_type="booking",
                resource_id=str(booking_id)
            )
        return booking

    async def get_booking_by_number(self, tenant_id: int, booking_number: str) -> Booking | None:
        """Get booking by booking number."""
        stmt = select(Booking).where(Booking.tenant_id == tenant_id, Booking.booking_number == booking_number)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_bookings(
        self,
        tenant_id: int,
        booking_date: date,
        resource_id: int | None = None,
        include_inactive: bool = False,
    ) -> list[Booking]:
        """Non-deleted bookings of a date in start order; only pending/confirmed unless asked."""
        require_tenant(tenant_id)
        stmt = (
            select(Booking)
            .options(selectinload(Booking.options))
            .where(
                Booking.tenant_id == tenant_id,
                Booking.booking_date == booking_date,
                Booking.deleted_at.is_(None),
            )
            .order_by(Booking.start_time, Booking.resource_id)
        )
        if resource_id is not None:
            stmt = stmt.where(Booking.resource_id == resource_id)
        if not include_inactive:
            stmt = stmt.where(Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        result = await self.db.execute(stmt)
        return list(result.scalars())


def parse_booking_id(value: str) -> UUID:
    """Parse a booking id from the wire, raising a 400 on malformed input."""
    try:
        return UUID(value)
    except ValueError as e:
        raise ValidationError(detail=f"Invalid booking id: {value}", errors={"booking_id": value}) from e
