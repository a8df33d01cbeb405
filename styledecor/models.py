"""Database models for the StyleDecor backend."""
from __future__ import annotations

from datetime import datetime, timezone

from .extensions import db


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    """Serialise a stored timestamp; all are UTC, but SQLite returns them naive."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


USER_ROLES = ("user", "admin", "decorator")
DECORATOR_STATUSES = ("pending", "approved", "disabled")
CATEGORIES = ("interior", "exterior", "event", "commercial", "residential", "other")
SERVICE_UNITS = ("per hour", "per room", "per project", "per square foot", "flat rate")
BOOKING_STATUSES = ("pending", "confirmed", "assigned", "in-progress", "completed", "cancelled")
BOOKING_PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")
ON_SITE_STAGES = (
    "assigned",
    "planning-phase",
    "materials-prepared",
    "on-the-way-to-venue",
    "setup-in-progress",
    "completed",
)
PAYMENT_STATUSES = ("pending", "succeeded", "failed", "canceled")
ACTIVE_PAYMENT_STATUSES = ("pending", "succeeded")


class User(db.Model):
    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    firebase_uid = db.Column(db.String(128), unique=True, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    role = db.Column(
        db.Enum(*USER_ROLES, name="user_role", native_enum=False, validate_strings=True),
        nullable=False,
        default="user",
        server_default="user",
    )
    image = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    decorator = db.relationship("Decorator", back_populates="user", uselist=False)

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.user_id,
            "name": self.name,
            "email": self.email,
            "image": self.image,
        }

    def to_dict(self) -> dict[str, object]:
        payload = self.to_dict_basic()
        payload.update(
            {
                "role": self.role,
                "createdAt": _iso(self.created_at),
                "updatedAt": _iso(self.updated_at),
            }
        )
        return payload


class Decorator(db.Model):
    """Provider profile for a user promoted to the decorator role."""

    __tablename__ = "decorators"

    decorator_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), unique=True, nullable=False)
    specialties = db.Column(db.JSON, nullable=False, default=list)
    rating = db.Column(db.Float, nullable=False, default=0.0)
    status = db.Column(
        db.Enum(*DECORATOR_STATUSES, name="decorator_status", native_enum=False, validate_strings=True),
        nullable=False,
        default="pending",
        server_default="pending",
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        db.CheckConstraint("rating >= 0 AND rating <= 5", name="check_decorator_rating_range"),
    )

    user = db.relationship("User", back_populates="decorator")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.decorator_id,
            "userId": self.user_id,
            "user": self.user.to_dict_basic() if self.user else None,
            "specialties": list(self.specialties or []),
            "rating": self.rating,
            "status": self.status,
            "createdAt": _iso(self.created_at),
        }


class Service(db.Model):
    """Decoration service offered on the platform, created by admins."""

    __tablename__ = "services"

    service_id = db.Column(db.Integer, primary_key=True)
    service_name = db.Column(db.String(150), nullable=False)
    cost = db.Column(db.Float, nullable=False)
    unit = db.Column(
        db.Enum(*SERVICE_UNITS, name="service_unit", native_enum=False, validate_strings=True),
        nullable=False,
    )
    category = db.Column(
        db.Enum(*CATEGORIES, name="service_category", native_enum=False, validate_strings=True),
        nullable=False,
    )
    description = db.Column(db.Text, nullable=False)
    created_by_email = db.Column(db.String(255), nullable=False)
    image = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (db.CheckConstraint("cost >= 0", name="check_service_cost_positive"),)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.service_id,
            "service_name": self.service_name,
            "cost": self.cost,
            "unit": self.unit,
            "category": self.category,
            "description": self.description,
            "image": self.image,
            "createdByEmail": self.created_by_email,
            "createdAt": _iso(self.created_at),
        }


class Booking(db.Model):
    __tablename__ = "bookings"

    booking_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False, index=True)
    decorator_id = db.Column(db.Integer, db.ForeignKey("decorators.decorator_id"), nullable=True, index=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False)
    location = db.Column(db.String(500), nullable=False)
    status = db.Column(
        db.Enum(*BOOKING_STATUSES, name="booking_status", native_enum=False, validate_strings=True),
        nullable=False,
        default="pending",
        server_default="pending",
        index=True,
    )
    payment_status = db.Column(
        db.Enum(*BOOKING_PAYMENT_STATUSES, name="booking_payment_status", native_enum=False, validate_strings=True),
        nullable=False,
        default="pending",
        server_default="pending",
        index=True,
    )
    # Fine-grained on-site progress; "status1" on the wire.
    on_site_stage = db.Column(
        db.Enum(*ON_SITE_STAGES, name="on_site_stage", native_enum=False, validate_strings=True),
        nullable=True,
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    user = db.relationship("User")
    service = db.relationship("Service")
    decorator = db.relationship("Decorator")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.booking_id,
            "userId": self.user_id,
            "user": self.user.to_dict_basic() if self.user else None,
            "serviceId": self.service_id,
            "service": self.service.to_dict() if self.service else None,
            "decoratorId": self.decorator_id,
            "date": _iso(self.date),
            "location": self.location,
            "status": self.status,
            "status1": self.on_site_stage,
            "paymentStatus": self.payment_status,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class Payment(db.Model):
    """Local record of a payment-provider intent for one booking."""

    __tablename__ = "payments"

    payment_id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.booking_id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    # Minor currency units (cents).
    amount = db.Column(db.Integer, nullable=False)
    stripe_intent_id = db.Column(db.String(255), unique=True, nullable=False)
    status = db.Column(
        db.Enum(*PAYMENT_STATUSES, name="payment_status", native_enum=False, validate_strings=True),
        nullable=False,
        default="pending",
        server_default="pending",
        index=True,
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        db.CheckConstraint("amount >= 0", name="check_payment_amount_positive"),
        # At most one pending or succeeded payment per booking.
        db.Index(
            "uq_payments_active_booking",
            "booking_id",
            unique=True,
            sqlite_where=db.text("status IN ('pending', 'succeeded')"),
            postgresql_where=db.text("status IN ('pending', 'succeeded')"),
        ),
    )

    booking = db.relationship("Booking")
    user = db.relationship("User")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.payment_id,
            "bookingId": self.booking_id,
            "userId": self.user_id,
            "amount": self.amount / 100.0,
            "stripeIntentId": self.stripe_intent_id,
            "status": self.status,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
