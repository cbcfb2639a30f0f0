"""Integration tests for API endpoints."""

import pytest

from factories import BOOKING_DAY


def hold_body(seeded, start="14:00", **kwargs) -> dict:
    return {
        "resource_id": seeded.staff[0].id,
        "menu_id": seeded.menu.id,
        "booking_date": BOOKING_DAY.isoformat(),
        "start_time": start,
        **kwargs,
    }


def commit_body(seeded, start="10:00", **kwargs) -> dict:
    return {
        "customer_id": seeded.customer.id,
        "menu_id": seeded.menu.id,
        "resource_id": seeded.staff[0].id,
        "booking_date": BOOKING_DAY.isoformat(),
        "start_time": start,
        **kwargs,
    }


@pytest.mark.asyncio
async def test_missing_tenant_header(test_client, seeded):
    """Every tenant-scoped endpoint requires X-Tenant-ID."""
    response = await test_client.post(
        "/v1/availability/slots",
        json={"menu_id": seeded.menu.id, "booking_date": BOOKING_DAY.isoformat()},
    )

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("application/problem+json")
    data = response.json()
    assert data["status"] == 400
    assert data["code"] == "TENANT_REQUIRED"


@pytest.mark.asyncio
async def test_malformed_tenant_header(test_client, seeded):
    response = await test_client.post(
        "/v1/booking/list",
        json={"booking_date": BOOKING_DAY.isoformat()},
        headers={"X-Tenant-ID": "salon-one"},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "TENANT_REQUIRED"


@pytest.mark.asyncio
async def test_availability_slots_endpoint(test_client, seeded, tenant_headers):
    response = await test_client.post(
        "/v1/availability/slots",
        json={
            "menu_id": seeded.menu.id,
            "resource_id": seeded.staff[0].id,
            "booking_date": BOOKING_DAY.isoformat(),
        },
        headers=tenant_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["duration_minutes"] == 60
    assert data["resource_id"] == seeded.staff[0].id
    assert data["slots"][0] == {
        "start_time": "09:00:00",
        "end_time": "10:00:00",
        "resource_ids": [seeded.staff[0].id],
    }
    assert data["slots"][-1]["start_time"] == "20:00:00"


@pytest.mark.asyncio
async def test_unknown_menu_is_not_found(test_client, seeded, tenant_headers):
    response = await test_client.post(
        "/v1/availability/slots",
        json={"menu_id": 9999, "booking_date": BOOKING_DAY.isoformat()},
        headers=tenant_headers,
    )
    assert response.status_code == 404
    assert response.json()["status"] == 404


@pytest.mark.asyncio
async def test_invalid_request_body(test_client, seeded, tenant_headers):
    response = await test_client.post(
        "/v1/availability/slots",
        json={"menu_id": 0, "booking_date": "not-a-date"},
        headers=tenant_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_quote_endpoint(test_client, seeded, tenant_headers):
    response = await test_client.post(
        "/v1/availability/quote",
        json={
            "menu_id": seeded.menu.id,
            "option_ids": [seeded.options["head_spa"].id, seeded.options["treatment"].id],
            "resource_id": seeded.staff[1].id,
        },
        headers=tenant_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total_duration_minutes"] == 90
    assert data["total_price"] > 7000
    assert [line["kind"] for line in data["lines"]][0] == "base"


@pytest.mark.asyncio
async def test_hold_flow(test_client, seeded, tenant_headers):
    """Issue, extend, inspect and release a hold over HTTP."""
    response = await test_client.post(
        "/v1/hold/issue", json=hold_body(seeded, ttl_seconds=300), headers=tenant_headers
    )
    assert response.status_code == 200
    hold = response.json()
    assert hold["state"] == "active"
    assert hold["remaining_seconds"] == 300
    assert hold["end_time"] == "15:00:00"
    token = hold["token"]

    response = await test_client.post(
        "/v1/hold/extend", json={"token": token, "additional_seconds": 300}, headers=tenant_headers
    )
    assert response.status_code == 200
    assert response.json()["token"] == token

    response = await test_client.post("/v1/hold/get", json={"token": token}, headers=tenant_headers)
    assert response.json()["remaining_seconds"] == 600

    # The held interval drops out of availability
    response = await test_client.post(
        "/v1/availability/slots",
        json={
            "menu_id": seeded.menu.id,
            "resource_id": seeded.staff[0].id,
            "booking_date": BOOKING_DAY.isoformat(),
        },
        headers=tenant_headers,
    )
    starts = [slot["start_time"] for slot in response.json()["slots"]]
    assert "14:00:00" not in starts

    for _ in range(2):
        response = await test_client.post("/v1/hold/release", json={"token": token}, headers=tenant_headers)
        assert response.status_code == 200
        assert response.json() == {"token": token, "released": True}

    response = await test_client.post("/v1/hold/get", json={"token": token}, headers=tenant_headers)
    assert response.json()["state"] == "released"


@pytest.mark.asyncio
async def test_conflicting_hold_returns_problem(test_client, seeded, tenant_headers):
    await test_client.post("/v1/hold/issue", json=hold_body(seeded), headers=tenant_headers)

    response = await test_client.post("/v1/hold/issue", json=hold_body(seeded, "14:30"), headers=tenant_headers)

    assert response.status_code == 409
    assert response.headers["content-type"].startswith("application/problem+json")
    data = response.json()
    assert data["code"] == "SLOT_CONFLICT"
    assert data["conflicting_window"]["start"] == "14:00"


@pytest.mark.asyncio
async def test_extend_expired_hold_returns_gone(test_client, seeded, tenant_headers, clock):
    response = await test_client.post(
        "/v1/hold/issue", json=hold_body(seeded, ttl_seconds=60), headers=tenant_headers
    )
    token = response.json()["token"]

    clock.advance(seconds=61)
    response = await test_client.post("/v1/hold/extend", json={"token": token}, headers=tenant_headers)
    assert response.status_code == 410


@pytest.mark.asyncio
async def test_booking_flow(test_client, seeded, tenant_headers):
    """Commit from a hold, read it back, list it and cancel it."""
    response = await test_client.post("/v1/hold/issue", json=hold_body(seeded, "10:00"), headers=tenant_headers)
    token = response.json()["token"]

    response = await test_client.post(
        "/v1/booking/commit", json=commit_body(seeded, hold_token=token), headers=tenant_headers
    )
    assert response.status_code == 200
    booking = response.json()
    assert booking["status"] == "confirmed"
    assert booking["hold_token"] == token
    assert booking["end_time"] == "11:00:00"
    assert booking["total_price"] == 5000

    response = await test_client.post("/v1/booking/get", json={"booking_id": booking["id"]}, headers=tenant_headers)
    assert response.json()["booking_number"] == booking["booking_number"]

    response = await test_client.post(
        "/v1/booking/list", json={"booking_date": BOOKING_DAY.isoformat()}, headers=tenant_headers
    )
    assert [item["id"] for item in response.json()["bookings"]] == [booking["id"]]

    response = await test_client.post(
        "/v1/booking/cancel",
        json={"booking_id": booking["id"], "reason": "Changed plans"},
        headers=tenant_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["cancellation_reason"] == "Changed plans"


@pytest.mark.asyncio
async def test_double_booking_returns_conflict(test_client, seeded, tenant_headers):
    response = await test_client.post("/v1/booking/commit", json=commit_body(seeded), headers=tenant_headers)
    assert response.status_code == 200

    response = await test_client.post("/v1/booking/commit", json=commit_body(seeded, "10:30"), headers=tenant_headers)

    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "BOOKING_CONFLICT"
    assert data["conflicting_window"]["resource_id"] == seeded.staff[0].id
    assert data["conflicting_window"]["start"] == "10:00"


@pytest.mark.asyncio
async def test_reschedule_endpoint(test_client, seeded, tenant_headers):
    response = await test_client.post("/v1/booking/commit", json=commit_body(seeded), headers=tenant_headers)
    booking_id = response.json()["id"]
    await test_client.post("/v1/booking/commit", json=commit_body(seeded, "15:00"), headers=tenant_headers)

    response = await test_client.post(
        "/v1/booking/reschedule",
        json={"booking_id": booking_id, "booking_date": BOOKING_DAY.isoformat(), "start_time": "12:00"},
        headers=tenant_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == booking_id
    assert (data["start_time"], data["end_time"]) == ("12:00:00", "13:00:00")

    response = await test_client.post(
        "/v1/booking/reschedule",
        json={"booking_id": booking_id, "booking_date": BOOKING_DAY.isoformat(), "start_time": "14:30"},
        headers=tenant_headers,
    )
    assert response.status_code == 409
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["conflicting_window"]["start"] == "15:00"


@pytest.mark.asyncio
async def test_booking_outside_hours(test_client, seeded, tenant_headers):
    response = await test_client.post("/v1/booking/commit", json=commit_body(seeded, "20:30"), headers=tenant_headers)
    assert response.status_code == 422
    assert response.json()["code"] == "OUTSIDE_BUSINESS_HOURS"


@pytest.mark.asyncio
async def test_malformed_booking_id(test_client, seeded, tenant_headers):
    response = await test_client.post("/v1/booking/get", json={"booking_id": "42"}, headers=tenant_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_bookings_invisible_to_other_tenants(test_client, seeded, other_tenant, tenant_headers):
    response = await test_client.post("/v1/booking/commit", json=commit_body(seeded), headers=tenant_headers)
    booking_id = response.json()["id"]

    response = await test_client.post(
        "/v1/booking/get",
        json={"booking_id": booking_id},
        headers={"X-Tenant-ID": str(other_tenant.tenant.id)},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_blackout_endpoint(test_client, seeded, tenant_headers):
    response = await test_client.post(
        "/v1/schedule/blackout",
        json={"entry_date": BOOKING_DAY.isoformat(), "kind": "closed", "note": "Inventory day"},
        headers=tenant_headers,
    )
    assert response.status_code == 200
    day = response.json()["days"][0]
    assert day["closed"] is True
    assert day["blackout"] is True

    response = await test_client.post(
        "/v1/availability/slots",
        json={"menu_id": seeded.menu.id, "booking_date": BOOKING_DAY.isoformat()},
        headers=tenant_headers,
    )
    assert response.json()["slots"] == []


@pytest.mark.asyncio
async def test_schedule_get_endpoint(test_client, seeded, tenant_headers):
    response = await test_client.post(
        "/v1/schedule/get",
        json={"start_date": BOOKING_DAY.isoformat(), "days": 2},
        headers=tenant_headers,
    )
    assert response.status_code == 200
    days = response.json()["days"]
    assert len(days) == 2
    assert days[0]["opens_at"] == "09:00:00"
    assert days[0]["closes_at"] == "21:00:00"


@pytest.mark.asyncio
async def test_metrics_endpoint(test_client):
    """Test the Prometheus metrics endpoint."""
    response = await test_client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
