"""Payment routes backed by the configured payment gateway."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from .auth import login_required
from .errors import success_response
from .extensions import get_payment_gateway
from .models import User
from .services.payments import PaymentReconciliation

bp_payments = Blueprint("payments", __name__, url_prefix="/payments")


def _reconciliation() -> PaymentReconciliation:
    return PaymentReconciliation(get_payment_gateway(), currency=current_app.config.get("PAYMENT_CURRENCY", "usd"))


@bp_payments.post("/create-intent")
@login_required
def create_payment_intent(actor: User) -> tuple[dict[str, object], int]:
    """Create or reuse a payment intent for a booking.
    ---
    tags:
      - Payments
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            bookingId:
              type: integer
          required:
            - bookingId
    responses:
      200:
        description: Client secret for the intent
      400:
        description: Invalid booking or amount
      403:
        description: Booking belongs to another user
      409:
        description: Booking already paid
      502:
        description: Payment provider error
    """
    payload = request.get_json(silent=True) or {}
    data = _reconciliation().create_intent(payload.get("bookingId"), actor)
    return success_response(data)


@bp_payments.post("/confirm")
@login_required
def confirm_payment(actor: User) -> tuple[dict[str, object], int]:
    """Confirm a payment against the provider and mark its booking paid.
    ---
    tags:
      - Payments
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            paymentId:
              type: integer
            stripeIntentId:
              type: string
    responses:
      200:
        description: Payment confirmed
      400:
        description: Payment not completed at the provider
      404:
        description: Payment record not found
      500:
        description: Payment captured but booking not updated
    """
    payload = request.get_json(silent=True) or {}
    payment, booking = _reconciliation().confirm(
        actor,
        payment_id=payload.get("paymentId"),
        stripe_intent_id=payload.get("stripeIntentId"),
    )
    return success_response(
        {"payment": payment.to_dict(), "booking": booking.to_dict()},
        "Payment confirmed successfully.",
    )


@bp_payments.post("/webhook")
def stripe_webhook() -> tuple[dict[str, object], int]:
    # Signature is verified by the gateway; no bearer token here.
    result = _reconciliation().handle_webhook(request.get_data(), request.headers.get("Stripe-Signature"))
    return jsonify(result), 200
