from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from api.routes import app, create_app
from models.booking import BookingStatus


@pytest.fixture
def client(availability, aggregator, review_service):
    rental_app = create_app(engine=availability, aggregator=aggregator, reviews=review_service)
    with TestClient(rental_app) as test_client:
        yield test_client


@pytest.fixture
def user(seed):
    return seed.user()


@pytest.fixture
def car(seed):
    return seed.car(price_per_day=80.0)


def booking_payload(car, user, start="2024-06-01T10:00:00", end="2024-06-03T10:00:00", **extra):
    return dict(car_id=car.id, user_id=user.id, pickup_at=start, return_at=end, **extra)


def test_create_and_fetch_booking(client, car, user):
    response = client.post("/bookings", json=booking_payload(car, user, pickup_location="Airport"))
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending_payment"
    assert body["total_price"] == 160.0
    assert "confirm" in body["allowed_events"]

    fetched = client.get(f"/bookings/{body['id']}").json()
    assert fetched["pickup_location"] == "Airport"


def test_overlapping_booking_returns_409(client, car, user):
    first = client.post("/bookings", json=booking_payload(car, user)).json()
    response = client.post("/bookings", json=booking_payload(car, user, "2024-06-02T00:00:00", "2024-06-02T12:00:00"))
    assert response.status_code == 409
    assert response.json()["conflicting_booking_id"] == first["id"]
    assert response.json()["resource_id"] == car.id


def test_inverted_window_returns_400(client, car, user):
    response = client.post("/bookings", json=booking_payload(car, user, "2024-06-03T10:00:00", "2024-06-01T10:00:00"))
    assert response.status_code == 400


def test_availability_endpoint(client, seed, car, user):
    other = seed.car()
    client.post("/bookings", json=booking_payload(car, user))

    response = client.get("/availability", params={
        "resource_type": "car", "start": "2024-06-02T00:00:00", "end": "2024-06-02T12:00:00",
    })
    assert response.status_code == 200
    assert response.json()["resource_ids"] == [other.id]


def test_events_endpoint(client, car, user):
    booking = client.post("/bookings", json=booking_payload(car, user)).json()

    response = client.post(f"/bookings/{booking['id']}/events", json={"event": "confirm", "actor": "payments"})
    assert response.status_code == 200
    assert response.json()["status"] == BookingStatus.CONFIRMED.value

    response = client.post(f"/bookings/{booking['id']}/events", json={"event": "complete"})
    assert response.status_code == 409
    assert response.json()["status"] == "confirmed"

    response = client.post(f"/bookings/{booking['id']}/events", json={"event": "fly"})
    assert response.status_code == 400


def test_unknown_booking_returns_404(client):
    assert client.get("/bookings/4242").status_code == 404


def test_reschedule_and_calendar(client, car, user):
    booking = client.post("/bookings", json=booking_payload(car, user)).json()
    response = client.patch(f"/bookings/{booking['id']}/window", json={
        "pickup_at": "2024-06-10T10:00:00", "return_at": "2024-06-11T10:00:00",
    })
    assert response.status_code == 200

    calendar = client.get(f"/resources/{car.id}/calendar", params={
        "start": "2024-06-01T00:00:00", "end": "2024-07-01T00:00:00",
    }).json()
    assert [b["pickup_at"] for b in calendar] == ["2024-06-10T10:00:00"]


def test_lock_timeout_returns_503(client, availability, car, user):
    availability.locks.timeout = 0
    with availability.locks.hold(car.id):
        response = client.post("/bookings", json=booking_payload(car, user))
    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"


def test_review_flow(client, seed, car, user):
    booking = seed.booking(car, user, datetime(2024, 6, 1), datetime(2024, 6, 2), status=BookingStatus.COMPLETED)

    response = client.post("/reviews", json={"user_id": user.id, "booking_id": booking.id, "rating": 4})
    assert response.status_code == 201
    review = response.json()

    assert client.post("/reviews", json={"user_id": user.id, "booking_id": booking.id, "rating": 5}).status_code == 409
    assert [r["id"] for r in client.get(f"/resources/{car.id}/reviews").json()] == [review["id"]]

    summary = client.post(f"/resources/{car.id}/rating/recompute").json()
    assert summary == {"resource_id": car.id, "average": 4.0, "count": 1}

    assert client.delete(f"/reviews/{review['id']}").json()["status"] == "inactive"
    assert client.post(f"/resources/{car.id}/rating/recompute").json()["count"] == 0


def test_module_level_app_serves_booking_routes():
    paths = {route.path for route in app.routes}
    assert {"/availability", "/bookings", "/bookings/{booking_id}/events", "/reviews"} <= paths
