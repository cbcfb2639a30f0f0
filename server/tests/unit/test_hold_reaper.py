"""Unit tests for the hold reaper worker."""

import asyncio
from datetime import time

import pytest

from factories import BOOKING_DAY, session_factory
from reserva.schemas.hold import IssueHoldRequest
from reserva.services.hold_service import HoldService
from reserva.workers.hold_reaper_worker import HoldReaperWorker


async def issue(session, seeded, clock, start: time, tenant=None):
    tenant = tenant or seeded
    return await HoldService(session, clock=clock).issue_hold(
        tenant.tenant.id,
        IssueHoldRequest(
            resource_id=tenant.staff[0].id,
            menu_id=tenant.menu.id,
            booking_date=BOOKING_DAY,
            start_time=start,
            ttl_seconds=300,
        ),
    )


@pytest.mark.asyncio
async def test_run_once_purges_every_tenant(test_engine, test_session, seeded, other_tenant, clock):
    stale = await issue(test_session, seeded, clock, time(10, 0))
    stale_other = await issue(test_session, seeded, clock, time(10, 0), tenant=other_tenant)
    stale_tokens = (stale.token, stale_other.token)

    clock.advance(hours=2)
    live = await issue(test_session, seeded, clock, time(12, 0))
    live_token = live.token

    worker = HoldReaperWorker(
        retention_seconds=3600,
        session_factory=session_factory(test_engine),
        clock=clock,
    )
    assert await worker.run_once() == 2

    hold_service = HoldService(test_session, clock=clock)
    assert await hold_service.get_hold_by_token(seeded.tenant.id, stale_tokens[0]) is None
    assert await hold_service.get_hold_by_token(other_tenant.tenant.id, stale_tokens[1]) is None
    assert await hold_service.is_valid(seeded.tenant.id, live_token)

    # Nothing left to do
    assert await worker.run_once() == 0


@pytest.mark.asyncio
async def test_worker_start_and_stop(test_engine, clock):
    worker = HoldReaperWorker(interval_seconds=3600, session_factory=session_factory(test_engine), clock=clock)

    await worker.start()
    assert worker.running
    await asyncio.sleep(0)

    await worker.stop()
    assert not worker.running
