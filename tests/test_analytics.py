"""Tests for the admin revenue and service-demand reports."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from styledecor.extensions import db
from styledecor.models import Payment


@pytest.fixture
def admin_headers(make_user):
    return make_user(role="admin")[1]


@pytest.fixture
def paid_bookings(app, make_user, make_service, make_booking):
    user_id, _ = make_user()
    makeover = make_service(name="Living Room Makeover", cost=150.0)
    lights = make_service(name="Garden Lights", cost=25.5, category="exterior")
    first = make_booking(user_id, makeover, status="completed", payment_status="paid")
    second = make_booking(user_id, makeover, status="confirmed", payment_status="paid")
    third = make_booking(user_id, lights, status="pending")

    with app.app_context():
        db.session.add_all([
            Payment(booking_id=first, user_id=user_id, amount=15000, stripe_intent_id="pi_1", status="succeeded"),
            Payment(booking_id=second, user_id=user_id, amount=2550, stripe_intent_id="pi_2", status="succeeded"),
            Payment(booking_id=third, user_id=user_id, amount=2550, stripe_intent_id="pi_3", status="failed"),
        ])
        db.session.commit()
    return makeover, lights


def test_revenue_counts_succeeded_payments(client, admin_headers, paid_bookings) -> None:
    response = client.get("/admin/analytics/revenue", headers=admin_headers)

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["totalRevenue"] == "175.50"
    assert data["totalTransactions"] == 2
    assert data["revenueByMonth"] == {datetime.now(timezone.utc).strftime("%Y-%m"): 175.5}


def test_revenue_date_window(client, admin_headers, paid_bookings) -> None:
    response = client.get("/admin/analytics/revenue?startDate=2999-01-01", headers=admin_headers)

    data = response.get_json()["data"]
    assert data["totalRevenue"] == "0.00"
    assert data["totalTransactions"] == 0


def test_revenue_rejects_bad_date(client, admin_headers) -> None:
    response = client.get("/admin/analytics/revenue?endDate=yesterday", headers=admin_headers)

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_parameters"


def test_service_demand(client, admin_headers, paid_bookings) -> None:
    makeover, lights = paid_bookings

    response = client.get("/admin/analytics/service-demand", headers=admin_headers)

    data = response.get_json()["data"]
    assert data["serviceDemand"] == [
        {
            "serviceId": makeover,
            "serviceName": "Living Room Makeover",
            "serviceCategory": "interior",
            "bookingCount": 2,
            "completedCount": 1,
        },
        {
            "serviceId": lights,
            "serviceName": "Garden Lights",
            "serviceCategory": "exterior",
            "bookingCount": 1,
            "completedCount": 0,
        },
    ]
    assert data["demandByCategory"]["interior"]["totalBookings"] == 2
    assert data["demandByCategory"]["exterior"]["totalCompleted"] == 0


def test_reports_require_admin(client, make_user) -> None:
    _, headers = make_user()

    response = client.get("/admin/analytics/service-demand", headers=headers)

    assert response.status_code == 403
