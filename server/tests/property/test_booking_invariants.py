"""Property-based tests for booking system invariants."""

import asyncio
from datetime import datetime, time, timedelta

from hypothesis import given, settings
from hypothesis import strategies as st

from factories import (
    BOOKING_DAY,
    FrozenClock,
    create_engine_with_schema,
    seed_tenant,
    session_factory,
)
from reserva.core.exceptions import BookingConflictError, OutsideBusinessHoursError, SlotConflictError
from reserva.models import HoldState
from reserva.schemas.booking import CommitBookingRequest
from reserva.schemas.hold import IssueHoldRequest
from reserva.scheduling.intervals import Interval
from reserva.scheduling.resource_ref import Assigned
from reserva.services.availability_service import AvailabilityService
from reserva.services.booking_service import BookingConflictResolver
from reserva.services.hold_service import HoldService

OPENING = datetime.combine(BOOKING_DAY, time(9, 0))
CLOSING = datetime.combine(BOOKING_DAY, time(21, 0))

# Half-hour grid index from 09:00; 23 is 20:30, which runs past closing
grid_steps = st.integers(min_value=0, max_value=23)
staff_indexes = st.integers(min_value=0, max_value=1)
booking_attempts = st.lists(
    st.tuples(staff_indexes, grid_steps, st.booleans()),
    min_size=1,
    max_size=12,
)
hold_attempts = st.lists(
    st.tuples(staff_indexes, st.integers(min_value=0, max_value=20), st.integers(min_value=0, max_value=400)),
    min_size=1,
    max_size=12,
)


def grid_start(step: int) -> time:
    return (OPENING + timedelta(minutes=30 * step)).time()


def run(scenario):
    """Run a scenario against a fresh in-memory database."""

    async def main():
        engine = await create_engine_with_schema()
        try:
            async with session_factory(engine)() as session:
                seeded = await seed_tenant(session)
                await scenario(session, seeded, FrozenClock())
        finally:
            await engine.dispose()

    asyncio.run(main())


@settings(max_examples=40, deadline=None)
@given(attempts=booking_attempts)
def test_accepted_bookings_never_overlap(attempts):
    """
    A commit succeeds exactly when it fits the hours and overlaps no accepted
    booking on the same resource.
    """

    async def scenario(session, seeded, clock):
        resolver = BookingConflictResolver(session, clock=clock)
        accepted: dict[int, list[Interval]] = {staff.id: [] for staff in seeded.staff}

        for staff_index, step, with_head_spa in attempts:
            staff_id = seeded.staff[staff_index].id
            start = OPENING + timedelta(minutes=30 * step)
            interval = Interval(start, start + timedelta(minutes=90 if with_head_spa else 60))
            expected = interval.end <= CLOSING and not any(interval.overlaps(other) for other in accepted[staff_id])

            try:
                await resolver.commit_booking(
                    seeded.tenant.id,
                    CommitBookingRequest(
                        customer_id=seeded.customer.id,
                        menu_id=seeded.menu.id,
                        resource_id=staff_id,
                        booking_date=BOOKING_DAY,
                        start_time=start.time(),
                        option_ids=[seeded.options["head_spa"].id] if with_head_spa else [],
                    ),
                )
                succeeded = True
            except (BookingConflictError, OutsideBusinessHoursError):
                succeeded = False

            assert succeeded == expected
            if succeeded:
                accepted[staff_id].append(interval)

        for staff in seeded.staff:
            stored = [
                booking.interval
                for booking in await resolver.list_bookings(seeded.tenant.id, BOOKING_DAY, resource_id=staff.id)
            ]
            assert sorted(stored) == sorted(accepted[staff.id])
            for i, first in enumerate(stored):
                for second in stored[i + 1:]:
                    assert not first.overlaps(second)

    run(scenario)


@settings(max_examples=30, deadline=None)
@given(booked=st.lists(grid_steps, max_size=6), candidate=grid_steps)
def test_offered_slots_are_exactly_the_committable_ones(booked, candidate):
    """A start is offered if and only if committing it succeeds."""

    async def scenario(session, seeded, clock):
        resolver = BookingConflictResolver(session, clock=clock)
        staff_id = seeded.staff[0].id

        def request(step: int) -> CommitBookingRequest:
            return CommitBookingRequest(
                customer_id=seeded.customer.id,
                menu_id=seeded.menu.id,
                resource_id=staff_id,
                booking_date=BOOKING_DAY,
                start_time=grid_start(step),
            )

        for step in booked:
            try:
                await resolver.commit_booking(seeded.tenant.id, request(step))
            except (BookingConflictError, OutsideBusinessHoursError):
                pass

        slots = await AvailabilityService(session, clock=clock).get_availability(
            seeded.tenant.id, seeded.menu.id, Assigned(staff_id), BOOKING_DAY
        )
        offered = grid_start(candidate) in [slot.start_time for slot in slots]

        try:
            await resolver.commit_booking(seeded.tenant.id, request(candidate))
            committed = True
        except (BookingConflictError, OutsideBusinessHoursError):
            committed = False

        assert committed == offered

    run(scenario)


@settings(max_examples=30, deadline=None)
@given(attempts=hold_attempts)
def test_live_holds_never_overlap(attempts):
    """Holds are exclusive while live and stop blocking the moment they expire."""

    async def scenario(session, seeded, clock):
        hold_service = HoldService(session, clock=clock)
        issued: list[tuple[int, Interval, datetime]] = []

        for staff_index, step, wait_seconds in attempts:
            clock.advance(seconds=wait_seconds)
            now = clock()
            staff_id = seeded.staff[staff_index].id
            start = OPENING + timedelta(minutes=30 * step)
            interval = Interval(start, start + timedelta(minutes=60))
            expected = not any(
                resource_id == staff_id and expires_at > now and interval.overlaps(other)
                for resource_id, other, expires_at in issued
            )

            try:
                await hold_service.issue_hold(
                    seeded.tenant.id,
                    IssueHoldRequest(
                        resource_id=staff_id,
                        menu_id=seeded.menu.id,
                        booking_date=BOOKING_DAY,
                        start_time=start.time(),
                        ttl_seconds=300,
                    ),
                )
                succeeded = True
            except SlotConflictError:
                succeeded = False

            assert succeeded == expected
            if succeeded:
                issued.append((staff_id, interval, now + timedelta(seconds=300)))

            live = await hold_service.list_active_holds(seeded.tenant.id, BOOKING_DAY)
            for i, first in enumerate(live):
                for second in live[i + 1:]:
                    if first.resource_id == second.resource_id:
                        assert not first.interval.overlaps(second.interval)

    run(scenario)


@settings(max_examples=20, deadline=None)
@given(releases=st.integers(min_value=1, max_value=5))
def test_release_takes_effect_once(releases):
    async def scenario(session, seeded, clock):
        hold_service = HoldService(session, clock=clock)
        hold = await hold_service.issue_hold(
            seeded.tenant.id,
            IssueHoldRequest(
                resource_id=seeded.staff[0].id,
                menu_id=seeded.menu.id,
                booking_date=BOOKING_DAY,
                start_time=time(12, 0),
            ),
        )
        token = hold.token

        results = [await hold_service.release(seeded.tenant.id, token) for _ in range(releases)]

        assert results == [True] + [False] * (releases - 1)
        released = await hold_service.get_hold(seeded.tenant.id, token)
        assert released.state(clock()) is HoldState.RELEASED

    run(scenario)
