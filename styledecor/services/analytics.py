"""Read-only revenue and service-demand reporting."""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime

from sqlalchemy import case, func

from ..extensions import db
from ..models import Booking, Payment, Service


def revenue(start: datetime | None = None, end: datetime | None = None) -> dict[str, object]:
    query = Payment.query.filter(Payment.status == "succeeded")
    if start:
        query = query.filter(Payment.created_at >= start)
    if end:
        query = query.filter(Payment.created_at <= end)
    payments = query.all()

    by_month: dict[str, float] = defaultdict(float)
    total_cents = 0
    for payment in payments:
        total_cents += payment.amount
        by_month[payment.created_at.strftime("%Y-%m")] += payment.amount / 100

    return {
        "totalRevenue": f"{total_cents / 100:.2f}",
        "totalTransactions": len(payments),
        "revenueByMonth": {month: round(value, 2) for month, value in sorted(by_month.items())},
    }


def service_demand() -> dict[str, object]:
    completed = func.sum(case((Booking.status == "completed", 1), else_=0))
    rows = (
        db.session.query(
            Service.service_id,
            Service.service_name,
            Service.category,
            func.count(Booking.booking_id).label("booking_count"),
            completed.label("completed_count"),
        )
        .join(Booking, Booking.service_id == Service.service_id)
        .group_by(Service.service_id, Service.service_name, Service.category)
        .order_by(func.count(Booking.booking_id).desc(), Service.service_id.asc())
        .all()
    )

    demand = []
    by_category: dict[str, dict[str, object]] = {}
    for row in rows:
        item = {
            "serviceId": row.service_id,
            "serviceName": row.service_name,
            "serviceCategory": row.category,
            "bookingCount": int(row.booking_count),
            "completedCount": int(row.completed_count or 0),
        }
        demand.append(item)

        bucket = by_category.setdefault(
            row.category, {"totalBookings": 0, "totalCompleted": 0, "services": []}
        )
        bucket["totalBookings"] += item["bookingCount"]
        bucket["totalCompleted"] += item["completedCount"]
        bucket["services"].append(
            {"name": row.service_name, "bookings": item["bookingCount"], "completed": item["completedCount"]}
        )

    return {"serviceDemand": demand, "demandByCategory": by_category}
