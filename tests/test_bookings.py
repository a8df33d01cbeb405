"""Tests for client booking creation, listing and cancellation."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from styledecor.extensions import db
from styledecor.models import Booking, Payment


def _iso_in(days: int) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def test_create_booking_201(app, client, make_user, make_service) -> None:
    user_id, headers = make_user()
    service_id = make_service()

    response = client.post(
        "/bookings",
        json={"serviceId": service_id, "date": _iso_in(5), "location": "House 4, Road 7"},
        headers=headers,
    )

    assert response.status_code == 201
    data = response.get_json()["data"]
    assert data["status"] == "pending"
    assert data["paymentStatus"] == "pending"
    assert data["decoratorId"] is None
    assert data["userId"] == user_id

    with app.app_context():
        assert Booking.query.count() == 1


def test_create_booking_accepts_zulu_suffix(client, make_user, make_service) -> None:
    _, headers = make_user()
    service_id = make_service()
    when = (datetime.now(timezone.utc) + timedelta(days=2)).strftime("%Y-%m-%dT%H:%M:%SZ")

    response = client.post(
        "/bookings", json={"serviceId": service_id, "date": when, "location": "Dhaka"}, headers=headers
    )

    assert response.status_code == 201


def test_create_booking_past_date_rejected(app, client, make_user, make_service) -> None:
    _, headers = make_user()
    service_id = make_service()

    response = client.post(
        "/bookings",
        json={"serviceId": service_id, "date": _iso_in(-1), "location": "Dhaka"},
        headers=headers,
    )

    assert response.status_code == 400
    assert response.get_json()["message"] == "Booking date must be in the future."
    with app.app_context():
        assert Booking.query.count() == 0


@pytest.mark.parametrize("payload", [
    {"date": "2099-01-01T10:00:00", "location": "Dhaka"},
    {"serviceId": 1, "location": "Dhaka"},
    {"serviceId": 1, "date": "2099-01-01T10:00:00"},
    {"serviceId": 1, "date": "2099-01-01T10:00:00", "location": "   "},
])
def test_create_booking_missing_fields(client, make_user, make_service, payload) -> None:
    _, headers = make_user()
    make_service()

    response = client.post("/bookings", json=payload, headers=headers)

    assert response.status_code == 400
    assert response.get_json()["message"] == "Please provide serviceId, date, and location."


def test_create_booking_unknown_service(client, make_user) -> None:
    _, headers = make_user()

    response = client.post(
        "/bookings", json={"serviceId": 404, "date": _iso_in(3), "location": "Dhaka"}, headers=headers
    )

    assert response.status_code == 404


def test_create_booking_malformed_ids_and_dates(client, make_user, make_service) -> None:
    _, headers = make_user()
    service_id = make_service()

    bad_id = client.post(
        "/bookings", json={"serviceId": "abc", "date": _iso_in(3), "location": "Dhaka"}, headers=headers
    )
    bad_date = client.post(
        "/bookings", json={"serviceId": service_id, "date": "next tuesday", "location": "Dhaka"}, headers=headers
    )

    assert bad_id.status_code == 400
    assert bad_date.status_code == 400


def test_my_bookings_only_lists_own(client, make_user, make_service, make_booking) -> None:
    alice_id, alice_headers = make_user()
    bob_id, _ = make_user()
    service_id = make_service()
    make_booking(alice_id, service_id)
    make_booking(bob_id, service_id)

    response = client.get("/bookings/me", headers=alice_headers)

    data = response.get_json()
    assert data["count"] == 1
    assert data["data"][0]["userId"] == alice_id


def test_cancel_pending_booking(app, client, make_user, make_service, make_booking) -> None:
    user_id, headers = make_user()
    booking_id = make_booking(user_id, make_service())

    response = client.delete(f"/bookings/{booking_id}", headers=headers)

    assert response.status_code == 200
    with app.app_context():
        assert db.session.get(Booking, booking_id).status == "cancelled"


def test_cancel_someone_elses_booking_forbidden(client, make_user, make_service, make_booking) -> None:
    owner_id, _ = make_user()
    _, other_headers = make_user()
    booking_id = make_booking(owner_id, make_service())

    response = client.delete(f"/bookings/{booking_id}", headers=other_headers)

    assert response.status_code == 403


@pytest.mark.parametrize("status", ["in-progress", "completed", "cancelled"])
def test_cancel_rejected_for_closed_bookings(app, client, make_user, make_service, make_booking, status) -> None:
    user_id, headers = make_user()
    booking_id = make_booking(user_id, make_service(), status=status)

    response = client.delete(f"/bookings/{booking_id}", headers=headers)

    assert response.status_code == 400
    assert response.get_json()["message"] == f"Cannot cancel a booking that is {status}."
    with app.app_context():
        assert db.session.get(Booking, booking_id).status == status


@pytest.mark.parametrize("status", ["confirmed", "assigned"])
def test_cancel_allowed_before_work_starts(client, make_user, make_service, make_booking, status) -> None:
    user_id, headers = make_user()
    booking_id = make_booking(user_id, make_service(), status=status)

    response = client.delete(f"/bookings/{booking_id}", headers=headers)

    assert response.status_code == 200


def test_cancel_missing_booking(client, make_user) -> None:
    _, headers = make_user()

    response = client.delete("/bookings/999", headers=headers)

    assert response.status_code == 404


def test_admin_lists_bookings_with_filters(client, make_user, make_service, make_booking) -> None:
    user_id, _ = make_user()
    _, admin_headers = make_user(role="admin")
    service_id = make_service()
    make_booking(user_id, service_id, status="pending")
    make_booking(user_id, service_id, status="confirmed", payment_status="paid")

    everything = client.get("/admin/bookings", headers=admin_headers).get_json()
    paid = client.get("/admin/bookings?paymentStatus=paid", headers=admin_headers).get_json()
    bad = client.get("/admin/bookings?status=unknown", headers=admin_headers)

    assert everything["count"] == 2
    assert paid["count"] == 1
    assert paid["data"][0]["status"] == "confirmed"
    assert bad.status_code == 400


def test_booking_date_keeps_utc_offset(client, make_user, make_service) -> None:
    _, headers = make_user()
    service_id = make_service()
    when = (datetime.now(timezone(timedelta(hours=5))) + timedelta(days=2)).replace(microsecond=0)

    created = client.post(
        "/bookings", json={"serviceId": service_id, "date": when.isoformat(), "location": "Dhaka"}, headers=headers
    ).get_json()["data"]
    listed = client.get("/bookings/me", headers=headers).get_json()["data"][0]

    for value in (created["date"], listed["date"]):
        parsed = datetime.fromisoformat(value)
        assert parsed.utcoffset() == timedelta(0)
        assert parsed == when


def test_fractional_ids_rejected(app, client, make_user, make_service) -> None:
    _, headers = make_user()
    service_id = make_service()

    fractional = client.post(
        "/bookings", json={"serviceId": service_id + 0.9, "date": _iso_in(3), "location": "Dhaka"}, headers=headers
    )
    whole = client.post(
        "/bookings", json={"serviceId": float(service_id), "date": _iso_in(3), "location": "Dhaka"}, headers=headers
    )

    assert fractional.status_code == 400
    assert fractional.get_json()["message"] == "Invalid service ID format."
    assert whole.status_code == 201
    with app.app_context():
        assert Booking.query.count() == 1


def test_cancel_releases_pending_payment(app, client, make_user, make_service, make_booking) -> None:
    user_id, headers = make_user()
    booking_id = make_booking(user_id, make_service())
    payment_id = client.post(
        "/payments/create-intent", json={"bookingId": booking_id}, headers=headers
    ).get_json()["data"]["paymentId"]

    response = client.delete(f"/bookings/{booking_id}", headers=headers)

    assert response.status_code == 200
    with app.app_context():
        assert db.session.get(Payment, payment_id).status == "canceled"


def test_booking_to_settlement_over_http(client, gateway, make_user, make_service) -> None:
    _, headers = make_user()
    service_id = make_service(cost=89.99)

    created = client.post(
        "/bookings", json={"serviceId": service_id, "date": _iso_in(1), "location": "Banani, Dhaka"}, headers=headers
    )
    assert created.status_code == 201
    booking_id = created.get_json()["data"]["id"]

    intent = client.post("/payments/create-intent", json={"bookingId": booking_id}, headers=headers)
    assert intent.status_code == 200
    intent_data = intent.get_json()["data"]
    assert intent_data["amount"] == 89.99
    assert gateway.created[0].amount == 8999

    gateway.set_status(gateway.created[0].id, "succeeded")
    confirmed = client.post("/payments/confirm", json={"paymentId": intent_data["paymentId"]}, headers=headers)
    assert confirmed.status_code == 200

    mine = client.get("/bookings/me", headers=headers).get_json()["data"]
    assert mine[0]["id"] == booking_id
    assert mine[0]["status"] == "confirmed"
    assert mine[0]["paymentStatus"] == "paid"
