"""Concurrency tests for booking operations."""

import asyncio
from datetime import time

import pytest
import pytest_asyncio

from factories import BOOKING_DAY, create_engine_with_schema, seed_tenant, session_factory
from reserva.core.exceptions import BookingConflictError, SlotConflictError
from reserva.schemas.booking import CommitBookingRequest
from reserva.schemas.hold import IssueHoldRequest
from reserva.services.booking_service import BookingConflictResolver
from reserva.services.hold_service import HoldService


@pytest_asyncio.fixture
async def file_sessions(tmp_path):
    """Session factory over a file database, so every session has its own connection."""
    engine = await create_engine_with_schema(f"sqlite+aiosqlite:///{tmp_path}/concurrency.db")
    yield session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def shared(file_sessions):
    async with file_sessions() as session:
        return await seed_tenant(session)


def commit_request(seeded, start: time, resource_id: int | None, hold_token: str | None = None) -> CommitBookingRequest:
    return CommitBookingRequest(
        customer_id=seeded.customer.id,
        menu_id=seeded.menu.id,
        resource_id=resource_id,
        booking_date=BOOKING_DAY,
        start_time=start,
        hold_token=hold_token,
    )


async def commit_in_own_session(file_sessions, clock, seeded, request: CommitBookingRequest):
    async with file_sessions() as session:
        resolver = BookingConflictResolver(session, clock=clock)
        booking = await resolver.commit_booking(seeded.tenant.id, request)
        return booking.resource_id


async def hold_in_own_session(file_sessions, clock, seeded, start: time):
    async with file_sessions() as session:
        hold = await HoldService(session, clock=clock).issue_hold(
            seeded.tenant.id,
            IssueHoldRequest(
                resource_id=seeded.staff[0].id,
                menu_id=seeded.menu.id,
                booking_date=BOOKING_DAY,
                start_time=start,
                ttl_seconds=300,
            ),
        )
        return hold.token


async def count_bookings(file_sessions, clock, seeded) -> int:
    async with file_sessions() as session:
        bookings = await BookingConflictResolver(session, clock=clock).list_bookings(seeded.tenant.id, BOOKING_DAY)
        return len(bookings)


@pytest.mark.asyncio
async def test_concurrent_commits_on_one_slot(file_sessions, shared, clock):
    """Of several simultaneous commits for the same interval exactly one wins."""
    attempts = 6
    results = await asyncio.gather(
        *(
            commit_in_own_session(file_sessions, clock, shared, commit_request(shared, time(10, 0), shared.staff[0].id))
            for _ in range(attempts)
        ),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    losers = [r for r in results if isinstance(r, Exception)]
    assert len(winners) == 1
    assert all(isinstance(r, BookingConflictError) for r in losers)
    assert await count_bookings(file_sessions, clock, shared) == 1


@pytest.mark.asyncio
async def test_concurrent_overlapping_commits(file_sessions, shared, clock):
    """Partially overlapping intervals are arbitrated the same way as identical ones."""
    starts = [time(10, 0), time(10, 30), time(9, 30)]
    results = await asyncio.gather(
        *(
            commit_in_own_session(file_sessions, clock, shared, commit_request(shared, start, shared.staff[0].id))
            for start in starts
        ),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    assert 1 <= len(winners) <= 2
    assert all(isinstance(r, BookingConflictError) for r in results if isinstance(r, Exception))
    # 09:30 and 10:30 can both win, but never together with 10:00
    if len(winners) == 2:
        assert isinstance(results[0], BookingConflictError)


@pytest.mark.asyncio
async def test_concurrent_unassigned_commits_fill_each_resource_once(file_sessions, shared, clock):
    results = await asyncio.gather(
        *(
            commit_in_own_session(file_sessions, clock, shared, commit_request(shared, time(10, 0), None))
            for _ in range(4)
        ),
        return_exceptions=True,
    )

    assigned = sorted(r for r in results if not isinstance(r, Exception))
    assert assigned == sorted(staff.id for staff in shared.staff)
    assert sum(isinstance(r, BookingConflictError) for r in results) == 2


@pytest.mark.asyncio
async def test_concurrent_holds_on_one_slot(file_sessions, shared, clock):
    results = await asyncio.gather(
        *(hold_in_own_session(file_sessions, clock, shared, time(14, 0)) for _ in range(5)),
        return_exceptions=True,
    )

    tokens = [r for r in results if not isinstance(r, Exception)]
    assert len(tokens) == 1
    assert all(isinstance(r, SlotConflictError) for r in results if isinstance(r, Exception))


@pytest.mark.asyncio
async def test_held_commit_races_direct_commit(file_sessions, shared, clock):
    """The holder and a client without the token race for the same interval; one booking results."""
    token = await hold_in_own_session(file_sessions, clock, shared, time(14, 0))

    results = await asyncio.gather(
        commit_in_own_session(
            file_sessions, clock, shared, commit_request(shared, time(14, 0), shared.staff[0].id, hold_token=token)
        ),
        commit_in_own_session(file_sessions, clock, shared, commit_request(shared, time(14, 0), shared.staff[0].id)),
        return_exceptions=True,
    )

    # The live hold shields the interval, so the token holder always wins
    assert results[0] == shared.staff[0].id
    assert isinstance(results[1], BookingConflictError)
    assert await count_bookings(file_sessions, clock, shared) == 1
