"""Payment provider capability and its Stripe implementation."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import stripe
from flask import current_app

from .errors import ExternalProviderError, InvalidInputError


@dataclass(frozen=True)
class ProviderIntent:
    id: str
    status: str
    client_secret: str | None = None
    amount: int | None = None


class PaymentGateway(Protocol):
    def create_intent(self, amount: int, currency: str, metadata: dict[str, str]) -> ProviderIntent: ...

    def retrieve_intent(self, intent_id: str) -> ProviderIntent: ...

    def construct_event(self, payload: bytes, signature: str | None) -> dict[str, Any]: ...


def _to_provider_intent(intent: Any) -> ProviderIntent:
    return ProviderIntent(
        id=intent.id,
        status=intent.status,
        client_secret=getattr(intent, "client_secret", None),
        amount=getattr(intent, "amount", None),
    )


class StripeGateway:
    """Stripe PaymentIntents, with the secret key passed on every call."""

    def __init__(self, secret_key: str | None, webhook_secret: str | None = None) -> None:
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret

    def _require_key(self) -> str:
        if not self.secret_key:
            current_app.logger.warning("Stripe secret key not configured")
            raise ExternalProviderError(
                "Payments are not currently available. Please contact support.",
                code="payments_unavailable",
            )
        return self.secret_key

    def create_intent(self, amount: int, currency: str, metadata: dict[str, str]) -> ProviderIntent:
        api_key = self._require_key()
        try:
            intent = stripe.PaymentIntent.create(
                api_key=api_key,
                amount=int(amount),
                currency=currency,
                metadata=metadata,
            )
        except stripe.StripeError as exc:
            current_app.logger.exception("Stripe API error while creating payment intent", exc_info=exc)
            raise ExternalProviderError("An error occurred while processing the payment.", code="payment_error") from exc
        return _to_provider_intent(intent)

    def retrieve_intent(self, intent_id: str) -> ProviderIntent:
        api_key = self._require_key()
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=api_key)
        except stripe.InvalidRequestError as exc:
            current_app.logger.warning("Stripe has no payment intent %s: %s", intent_id, exc)
            raise ExternalProviderError("Invalid Stripe payment intent.", code="invalid_payment_intent") from exc
        except stripe.StripeError as exc:
            current_app.logger.exception("Stripe API error while retrieving payment intent", exc_info=exc)
            raise ExternalProviderError("Failed to retrieve payment intent.", code="payment_error") from exc
        return _to_provider_intent(intent)

    def construct_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        if not self.webhook_secret:
            current_app.logger.error("Stripe webhook secret not configured - webhooks will not be processed")
            raise ExternalProviderError("Webhooks are not configured.", code="webhook_not_configured")
        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as exc:
            current_app.logger.warning("Invalid webhook payload")
            raise InvalidInputError("Invalid webhook payload.", code="invalid_payload") from exc
        except stripe.SignatureVerificationError as exc:
            current_app.logger.warning("Invalid signature for webhook")
            raise InvalidInputError("Invalid webhook signature.", code="invalid_signature") from exc
