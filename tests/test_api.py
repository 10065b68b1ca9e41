"""
HTTP API tests against the router with a per-test database.
"""

import httpx
import pytest_asyncio
from fastapi import FastAPI

from chargeline.api.routes import get_controller, get_db, router


@pytest_asyncio.fixture
async def client(session_factory, controller, stations):
    app = FastAPI()
    app.include_router(router)

    async def override_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_controller] = lambda: controller

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _book(client, station_id="CS-02"):
    response = await client.post(
        "/api/sessions",
        json={
            "customer_name": "Asha Gurung",
            "customer_phone": "9800000001",
            "station_id": station_id,
            "customer_email": "asha@example.com",
        },
    )
    assert response.status_code == 200, f"Expected 200, got {response.status_code}: {response.text}"
    return response.json()


async def test_stations_with_availability(client):
    response = await client.get("/api/stations")

    assert response.status_code == 200
    availability = {s["station_id"]: s["availability"] for s in response.json()}
    assert availability == {
        "CS-01": "available",
        "CS-02": "available",
        "CS-03": "maintenance",
        "CS-04": "occupied",
    }


async def test_full_session_flow(client):
    print("🔌 Booking, starting and completing over HTTP...")
    order = await _book(client)
    assert order["status"] == "booked"
    assert order["order_number"] == "CHG-20240601-0001"

    response = await client.post(f"/api/sessions/{order['id']}/start", json={})
    assert response.status_code == 200
    assert response.json()["expected_end_time"] == "2024-06-01T12:00:00"

    stations = (await client.get("/api/stations", params={"station_id": "CS-02"})).json()
    assert stations[0]["availability"] == "occupied"
    assert stations[0]["available_at"] == "2024-06-01T12:00:00"

    response = await client.post(
        f"/api/sessions/{order['order_number']}/complete",
        json={
            "billing": {"start_percentage": 20, "end_percentage": 80, "rate_per_percentage_point": 5},
            "paid": True,
            "payment_method": "Cash",
        },
    )
    assert response.status_code == 200
    completed = response.json()
    assert completed["status"] == "completed"
    assert completed["payment_status"] == "paid"
    assert completed["total_amount"] == "300.00"


async def test_illegal_transition_is_conflict(client):
    order = await _book(client)

    response = await client.post(f"/api/sessions/{order['id']}/complete", json={})

    assert response.status_code == 409, f"Expected 409, got {response.status_code}"
    assert response.json()["detail"]["current_status"] == "booked"


async def test_validation_errors_are_bad_requests(client):
    response = await client.post(
        "/api/sessions",
        json={"customer_name": "", "customer_phone": "9800000001", "station_id": "CS-01"},
    )
    assert response.status_code == 400

    response = await client.post(
        "/api/sessions",
        json={"customer_name": "Asha", "customer_phone": "9800000001", "station_id": "CS-03"},
    )
    assert response.status_code == 400
    assert "maintenance" in response.json()["detail"]


async def test_unknown_session_is_not_found(client):
    response = await client.get("/api/sessions/CHG-20240601-9999")
    assert response.status_code == 404


async def test_delete_requires_terminal_state(client):
    order = await _book(client)

    response = await client.delete(f"/api/sessions/{order['id']}")
    assert response.status_code == 409

    await client.post(f"/api/sessions/{order['id']}/cancel")
    response = await client.delete(f"/api/sessions/{order['id']}")
    assert response.status_code == 200
    assert response.json() == {"success": True}


async def test_billing_preview(client):
    response = await client.post(
        "/api/billing/preview",
        json={
            "start_percentage": 20,
            "end_percentage": 80,
            "rate_per_percentage_point": 5,
            "energy_consumed": 10,
            "rate_per_energy_unit": 15,
        },
    )

    assert response.status_code == 200
    assert response.json() == {
        "percentage_amount": "300.00",
        "energy_amount": "150.00",
        "total_amount": "450.00",
    }


async def test_log_sale(client):
    response = await client.post(
        "/api/sales",
        json={"station_id": "CS-01", "payment_mode": "Cash", "energy_consumed": 10, "rate_per_energy_unit": 15},
    )

    assert response.status_code == 200
    sale = response.json()
    assert sale["total_amount"] == "150.00"
    assert sale["customer_name"] == "Walk-in Customer"

    sales = (await client.get("/api/sales")).json()
    assert [s["sale_number"] for s in sales] == [sale["sale_number"]]


async def test_reservation_flow(client):
    response = await client.post(
        "/api/reservations",
        json={
            "customer_name": "Kamal",
            "customer_phone": "9800000010",
            "station_id": "CS-01",
            "reservation_date": "2024-06-02",
            "start_time": "14:00:00",
            "end_time": "15:00:00",
        },
    )
    assert response.status_code == 200
    reservation = response.json()
    assert reservation["status"] == "pending"

    response = await client.patch(
        f"/api/reservations/{reservation['id']}/status", json={"status": "completed"}
    )
    assert response.status_code == 409

    response = await client.patch(
        f"/api/reservations/{reservation['id']}/status", json={"status": "confirmed"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"


async def test_station_status_update(client):
    response = await client.patch("/api/stations/CS-04/status", json={"status": "available"})
    assert response.status_code == 200
    assert response.json()["status"] == "available"

    response = await client.patch("/api/stations/CS-04/status", json={"status": "broken"})
    assert response.status_code == 400


async def test_health_endpoints():
    from chargeline.api_server import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        root = await client.get("/")
        health = await client.get("/health")

    assert root.status_code == 200
    assert root.json()["docs"] == "/docs"
    assert health.json()["status"] == "healthy"
    assert health.json()["timestamp"].endswith("Z")


async def test_billing_preview_prices_large_readings(client):
    response = await client.post(
        "/api/billing/preview", json={"energy_consumed": 1e27, "rate_per_energy_unit": 10}
    )

    assert response.status_code == 200, f"Expected 200, got {response.status_code}: {response.text}"
    assert response.json()["total_amount"] == "10000000000000000000000000000.00"


async def test_restart_of_completed_order_is_conflict(client):
    order = await _book(client)
    await client.post(f"/api/sessions/{order['id']}/start", json={})
    await client.post(f"/api/sessions/{order['id']}/complete", json={})

    response = await client.post(
        f"/api/sessions/{order['id']}/start", json={"expected_end_time": "2024-06-01T09:00:00Z"}
    )

    assert response.status_code == 409, f"Expected 409, got {response.status_code}"
    assert response.json()["detail"]["current_status"] == "completed"


async def test_notify_endpoint(client, notifier):
    order = await _book(client)

    response = await client.post(f"/api/sessions/{order['order_number']}/notify")

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert [p.event for p in notifier.sent] == ["confirmation"]

    response = await client.post("/api/sessions/CHG-20240601-9999/notify")
    assert response.status_code == 404
