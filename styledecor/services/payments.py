"""Payment reconciliation against the external payment provider.

The provider is the source of truth for whether money moved. Local ``Payment``
rows mirror provider intents (at most one active row per booking) and a
succeeded payment is propagated into its booking as ``payment_status=paid``.
Settlement is two commits; when the second fails the payment is left
succeeded with an unsettled booking, which ``find_anomalies`` reports and
``repair`` fixes.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from flask import current_app

from ..errors import (ConflictError, DomainError, ExternalProviderError, ForbiddenError,
                      InvalidInputError, InvalidStateError, NotFoundError,
                      ReconciliationAnomaly)
from ..models import ACTIVE_PAYMENT_STATUSES, Booking, Payment, User
from ..payment_gateway import PaymentGateway, ProviderIntent
from ..store import Store
from . import parse_id


def to_minor_units(cost: Any) -> int:
    """Convert a major-unit price to integer minor units, rounding half up."""
    return int((Decimal(str(cost)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentReconciliation:
    def __init__(self, gateway: PaymentGateway, store: Store | None = None, currency: str = "usd") -> None:
        self.gateway = gateway
        self.store = store or Store()
        self.currency = currency

    # -- intent creation ---------------------------------------------------

    def create_intent(self, booking_id: Any, actor: User) -> dict[str, Any]:
        if not booking_id:
            raise InvalidInputError("Please provide bookingId.")
        booking = self.store.get_or_404(Booking, parse_id(booking_id, "booking ID"), "Booking")

        if booking.user_id != actor.user_id:
            raise ForbiddenError("You do not have permission to pay for this booking.")
        if booking.payment_status == "paid":
            raise ConflictError("This booking has already been paid.", code="already_paid")
        if booking.status == "cancelled":
            raise InvalidStateError("Cannot pay for a cancelled booking.")

        existing = self.active_payment_for(booking)
        if existing is not None and existing.status == "succeeded":
            raise ConflictError("Payment already completed for this booking.", code="already_paid")

        service = booking.service
        if service is None:
            raise InvalidInputError("Booking has no associated service.")
        amount = to_minor_units(service.cost)
        if amount <= 0:
            raise InvalidInputError("Invalid payment amount.")

        metadata = {
            "bookingId": str(booking.booking_id),
            "userId": str(actor.user_id),
            "serviceName": service.service_name,
        }

        if existing is not None:
            intent = self._reuse_or_replace(existing, amount, metadata)
            payment = existing
        else:
            intent = self.gateway.create_intent(amount, self.currency, metadata)
            payment = Payment(
                booking_id=booking.booking_id,
                user_id=actor.user_id,
                amount=amount,
                stripe_intent_id=intent.id,
                status="pending",
            )
            self.store.save(payment)
            current_app.logger.info("Created payment %s for booking %s", payment.payment_id, booking.booking_id)

        return {
            "clientSecret": intent.client_secret,
            "paymentId": payment.payment_id,
            "amount": amount / 100,
        }

    def _reuse_or_replace(self, payment: Payment, amount: int, metadata: dict[str, str]) -> ProviderIntent:
        try:
            intent = self.gateway.retrieve_intent(payment.stripe_intent_id)
        except ExternalProviderError as exc:
            current_app.logger.warning(
                "Payment %s intent %s could not be retrieved (%s); creating a new intent",
                payment.payment_id,
                payment.stripe_intent_id,
                exc.code,
            )
            intent = None

        if intent is not None and intent.status != "canceled":
            return intent

        intent = self.gateway.create_intent(amount, self.currency, metadata)
        payment.stripe_intent_id = intent.id
        payment.amount = amount
        self.store.save(payment)
        return intent

    def active_payment_for(self, booking: Booking) -> Payment | None:
        return Payment.query.filter(
            Payment.booking_id == booking.booking_id,
            Payment.status.in_(ACTIVE_PAYMENT_STATUSES),
        ).first()

    # -- confirmation --------------------------------------------------------

    def resolve_payment(self, payment_id: Any = None, stripe_intent_id: Any = None) -> Payment:
        if not payment_id and not stripe_intent_id:
            raise InvalidInputError("Please provide either paymentId or stripeIntentId.")
        if payment_id:
            payment = self.store.get(Payment, parse_id(payment_id, "payment ID"))
        else:
            payment = Payment.query.filter_by(stripe_intent_id=str(stripe_intent_id)).first()
        if payment is None:
            raise NotFoundError("Payment record not found.")
        return payment

    def confirm(self, actor: User, payment_id: Any = None, stripe_intent_id: Any = None) -> tuple[Payment, Booking]:
        payment = self.resolve_payment(payment_id, stripe_intent_id)
        if payment.user_id != actor.user_id:
            raise ForbiddenError("You do not have permission to confirm this payment.")

        intent = self.gateway.retrieve_intent(payment.stripe_intent_id)
        if intent.status != "succeeded":
            if intent.status == "canceled" and payment.status == "pending":
                payment.status = "canceled"
                self.store.save(payment)
            raise InvalidStateError(
                f"Payment not completed. Current status: {intent.status}",
                code="payment_incomplete",
                details={"paymentStatus": intent.status},
            )

        return self.settle(payment)

    def settle(self, payment: Payment) -> tuple[Payment, Booking]:
        """Record ``payment`` as succeeded and propagate it into its booking."""
        if payment.status != "succeeded":
            payment.status = "succeeded"
            self.store.save(payment)

        booking_id = payment.booking_id
        try:
            booking = self.store.get_or_404(Booking, booking_id, "Booking")
            if booking.status == "cancelled":
                raise InvalidStateError("Booking was cancelled before the payment succeeded.", code="booking_cancelled")
            booking.payment_status = "paid"
            if booking.status == "pending":
                booking.status = "confirmed"
            self.store.save(booking)
        except DomainError as exc:
            current_app.logger.error(
                "Reconciliation anomaly: payment %s succeeded but booking %s was not settled (%s)",
                payment.payment_id,
                booking_id,
                exc.code,
            )
            raise ReconciliationAnomaly(payment.payment_id, booking_id) from exc

        current_app.logger.info("Payment %s settled booking %s", payment.payment_id, booking_id)
        return payment, booking

    # -- webhook and repair --------------------------------------------------

    def handle_webhook(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        event = self.gateway.construct_event(payload, signature)
        event_type = event.get("type")
        data = (event.get("data") or {}).get("object") or {}

        if event_type != "payment_intent.succeeded":
            return {"received": True, "handled": False}

        intent_id = data.get("id")
        payment = Payment.query.filter_by(stripe_intent_id=intent_id).first() if intent_id else None
        if payment is None:
            current_app.logger.info("Webhook for unknown payment intent %s; skipping", intent_id)
            return {"received": True, "handled": False}

        # Re-check with the provider rather than trusting the event body.
        intent = self.gateway.retrieve_intent(payment.stripe_intent_id)
        if intent.status != "succeeded":
            current_app.logger.warning(
                "Webhook reported success for %s but provider status is %s", intent_id, intent.status
            )
            return {"received": True, "handled": False}

        self.settle(payment)
        return {"received": True, "handled": True}

    def find_anomalies(self) -> list[Payment]:
        return (
            Payment.query.join(Booking, Booking.booking_id == Payment.booking_id)
            .filter(Payment.status == "succeeded", Booking.payment_status != "paid")
            .order_by(Payment.payment_id.asc())
            .all()
        )

    def repair(self, payment_id: Any) -> tuple[Payment, Booking]:
        payment = self.store.get_or_404(Payment, parse_id(payment_id, "payment ID"), "Payment")
        if payment.status != "succeeded":
            raise InvalidStateError(f"Only succeeded payments can be reconciled; payment is {payment.status}.")
        return self.settle(payment)
