"""Booking lifecycle: creation, assignment, status transitions and cancellation."""
from __future__ import annotations

from datetime import datetime, timezone

from flask import current_app

from ..errors import ForbiddenError, InvalidInputError, InvalidStateError
from ..models import BOOKING_STATUSES, ON_SITE_STAGES, Booking, Decorator, Payment, Service, User
from ..store import Store
from . import parse_id

TERMINAL_STATUSES = frozenset({"completed", "cancelled"})
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "assigned": frozenset({"in-progress", "completed"}),
    "in-progress": frozenset({"completed"}),
}
NON_CANCELLABLE_STATUSES = frozenset({"completed", "in-progress", "cancelled"})


def parse_booking_date(raw: object) -> datetime:
    """Parse an ISO-8601 date, treating naive values as UTC."""
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidInputError("date must be a valid ISO format datetime.")
    try:
        value = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError as exc:
        raise InvalidInputError("date must be a valid ISO format datetime.") from exc
    return as_utc(value)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class BookingLifecycle:
    def __init__(self, store: Store | None = None, clock=None) -> None:
        self.store = store or Store()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # -- creation and listings -------------------------------------------

    def create(self, actor: User, service_id, date, location) -> Booking:
        if not service_id or not date or not location or not str(location).strip():
            raise InvalidInputError("Please provide serviceId, date, and location.")

        service = self.store.get_or_404(Service, parse_id(service_id, "service ID"), "Service")

        when = date if isinstance(date, datetime) else parse_booking_date(date)
        when = as_utc(when)
        if when <= self.clock():
            raise InvalidInputError("Booking date must be in the future.")

        booking = Booking(
            user_id=actor.user_id,
            service_id=service.service_id,
            date=when,
            location=str(location).strip(),
            status="pending",
            payment_status="pending",
        )
        self.store.save(booking)
        current_app.logger.info("Booking %s created by user %s", booking.booking_id, actor.user_id)
        return booking

    def list_for_user(self, actor: User) -> list[Booking]:
        return (
            Booking.query.filter_by(user_id=actor.user_id)
            .order_by(Booking.created_at.desc(), Booking.booking_id.desc())
            .all()
        )

    def list_all(self, status: str | None = None, payment_status: str | None = None) -> list[Booking]:
        query = Booking.query
        if status:
            query = query.filter(Booking.status == status)
        if payment_status:
            query = query.filter(Booking.payment_status == payment_status)
        return query.order_by(Booking.created_at.desc(), Booking.booking_id.desc()).all()

    def list_for_decorator(self, decorator: Decorator) -> list[Booking]:
        if decorator.status != "approved":
            raise ForbiddenError(
                f"Your decorator account is {decorator.status}. Please wait for admin approval."
            )
        return (
            Booking.query.filter_by(decorator_id=decorator.decorator_id)
            .order_by(Booking.date.asc())
            .all()
        )

    # -- admin assignment --------------------------------------------------

    def assign(self, booking_id, decorator_id) -> Booking:
        if not decorator_id:
            raise InvalidInputError("Please provide decoratorId.")

        booking = self.store.get_or_404(Booking, booking_id, "Booking")
        decorator = self.store.get_or_404(Decorator, parse_id(decorator_id, "decorator ID"), "Decorator")

        if decorator.status != "approved":
            raise InvalidStateError("Cannot assign a decorator that is not approved.")
        if booking.status in TERMINAL_STATUSES or booking.status == "in-progress":
            raise InvalidStateError(f"Cannot assign a decorator to a booking that is already {booking.status}.")

        if booking.decorator_id != decorator.decorator_id:
            # On-site progress belongs to the previous decorator.
            booking.on_site_stage = None
        booking.decorator_id = decorator.decorator_id
        booking.status = "assigned"
        self.store.save(booking)
        current_app.logger.info("Decorator %s assigned to booking %s", decorator.decorator_id, booking.booking_id)
        return booking

    # -- decorator progress ------------------------------------------------

    def _owned_booking(self, booking_id, actor_decorator_id) -> Booking:
        booking = self.store.get_or_404(Booking, booking_id, "Booking")
        if booking.decorator_id is None or booking.decorator_id != actor_decorator_id:
            raise ForbiddenError("This booking is not assigned to you.")
        return booking

    def advance_status(self, booking_id, actor_decorator_id, new_status) -> Booking:
        if new_status not in BOOKING_STATUSES:
            raise InvalidInputError(f"Invalid status. Must be one of: {', '.join(BOOKING_STATUSES)}")

        booking = self._owned_booking(booking_id, actor_decorator_id)
        current = booking.status

        if current in TERMINAL_STATUSES:
            raise InvalidStateError(f"Cannot update status of a booking that is already {current}.")
        if new_status not in ALLOWED_TRANSITIONS.get(current, frozenset()):
            raise InvalidStateError(f"Invalid status transition from '{current}' to '{new_status}'.")

        booking.status = new_status
        self.store.save(booking)
        return booking

    def advance_on_site_stage(self, booking_id, actor_decorator_id, new_stage) -> Booking:
        if new_stage not in ON_SITE_STAGES:
            raise InvalidInputError(f"Invalid status1. Must be one of: {', '.join(ON_SITE_STAGES)}")

        booking = self._owned_booking(booking_id, actor_decorator_id)
        if booking.status in TERMINAL_STATUSES:
            raise InvalidStateError(f"Cannot update status of a booking that is already {booking.status}.")

        # TODO: confirm with product whether the first stage may start mid-sequence;
        # any valid stage is accepted while no stage has been recorded.
        if booking.on_site_stage is not None:
            current_index = ON_SITE_STAGES.index(booking.on_site_stage)
            if ON_SITE_STAGES.index(new_stage) < current_index:
                raise InvalidStateError(
                    f"Cannot move status backwards from '{booking.on_site_stage}' to '{new_stage}'."
                )

        booking.on_site_stage = new_stage
        if new_stage == ON_SITE_STAGES[-1]:
            booking.status = "completed"
        self.store.save(booking)
        return booking

    # -- client cancellation ---------------------------------------------

    def cancel(self, booking_id, actor: User) -> Booking:
        booking = self.store.get_or_404(Booking, booking_id, "Booking")
        if booking.user_id != actor.user_id:
            raise ForbiddenError("You do not have permission to cancel this booking.")
        if booking.status in NON_CANCELLABLE_STATUSES:
            raise InvalidStateError(f"Cannot cancel a booking that is {booking.status}.")

        pending = Payment.query.filter_by(booking_id=booking.booking_id, status="pending").all()
        for payment in pending:
            payment.status = "canceled"
        booking.status = "cancelled"
        self.store.save(booking, *pending)
        current_app.logger.info("Booking %s cancelled by user %s", booking.booking_id, actor.user_id)
        return booking
