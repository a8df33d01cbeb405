"""Error kinds, domain exceptions and the JSON response envelope.

Every failure the core components report is a ``DomainError`` subclass tagged
with one member of the closed ``ErrorKind`` enumeration. Route handlers never
build error payloads by hand; the handlers registered in ``register_error_handlers``
translate raised errors into the ``{"success": false, ...}`` envelope.
"""
from __future__ import annotations

import enum
import traceback
from typing import Any

from flask import Flask, current_app, jsonify
from werkzeug.exceptions import HTTPException


class ErrorKind(enum.Enum):
    INVALID_INPUT = ("invalid_input", 400)
    NOT_FOUND = ("not_found", 404)
    FORBIDDEN = ("forbidden", 403)
    INVALID_STATE = ("invalid_state", 400)
    CONFLICT = ("conflict", 409)
    AUTH = ("unauthorized", 401)
    EXTERNAL_PROVIDER = ("provider_error", 502)
    INTERNAL = ("server_error", 500)

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def http_status(self) -> int:
        return self.value[1]


class DomainError(Exception):
    """Base class for all errors surfaced to API callers."""

    kind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.kind.code
        self.details = details or {}
        super().__init__(message)

    @property
    def http_status(self) -> int:
        return self.kind.http_status

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": False, "error": self.code, "message": self.message}
        payload.update(self.details)
        return payload


class InvalidInputError(DomainError):
    kind = ErrorKind.INVALID_INPUT


class NotFoundError(DomainError):
    kind = ErrorKind.NOT_FOUND


class ForbiddenError(DomainError):
    kind = ErrorKind.FORBIDDEN


class InvalidStateError(DomainError):
    kind = ErrorKind.INVALID_STATE


class ConflictError(DomainError):
    kind = ErrorKind.CONFLICT


class AuthError(DomainError):
    kind = ErrorKind.AUTH


class ExternalProviderError(DomainError):
    """An identity or payment provider call failed."""

    kind = ErrorKind.EXTERNAL_PROVIDER


class InternalError(DomainError):
    kind = ErrorKind.INTERNAL


class ReconciliationAnomaly(InternalError):
    """A payment was recorded as succeeded but its booking could not be settled.

    The payment row is already committed, so the condition is detectable later
    through ``PaymentReconciliation.find_anomalies``.
    """

    def __init__(self, payment_id: int, booking_id: int) -> None:
        super().__init__(
            "Payment was captured but the booking could not be updated. It has been flagged for reconciliation.",
            code="reconciliation_anomaly",
            details={"paymentId": payment_id, "bookingId": booking_id},
        )
        self.payment_id = payment_id
        self.booking_id = booking_id


def success_response(data: Any = None, message: str | None = None, status: int = 200, **extra: Any):
    payload: dict[str, Any] = {"success": True}
    if message:
        payload["message"] = message
    if data is not None:
        payload["data"] = data
    payload.update(extra)
    return jsonify(payload), status


def register_error_handlers(app: Flask) -> None:
    """Render domain, routing and unexpected errors in the shared envelope."""

    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        if exc.kind is ErrorKind.INTERNAL:
            current_app.logger.error("Request failed with %s: %s", exc.code, exc.message)
        return jsonify(exc.to_dict()), exc.http_status

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        payload = {
            "success": False,
            "error": (exc.name or "error").lower().replace(" ", "_"),
            "message": exc.description,
        }
        return jsonify(payload), exc.code or 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        current_app.logger.exception("Unhandled error while processing request", exc_info=exc)
        payload: dict[str, Any] = {
            "success": False,
            "error": ErrorKind.INTERNAL.code,
            "message": "Internal server error",
        }
        if current_app.debug:
            payload["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return jsonify(payload), 500
