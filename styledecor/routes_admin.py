"""Admin routes: catalogue management, assignment, decorators and reports."""
from __future__ import annotations

from datetime import datetime

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from .auth import login_required, roles_required
from .errors import InvalidInputError, success_response
from .extensions import get_payment_gateway
from .models import BOOKING_PAYMENT_STATUSES, BOOKING_STATUSES, CATEGORIES, SERVICE_UNITS, Service, User
from .services import analytics
from .services.bookings import BookingLifecycle
from .services.decorators import DecoratorPromotion
from .services.payments import PaymentReconciliation
from .store import Store

bp_admin = Blueprint("admin", __name__, url_prefix="/admin")

SERVICE_FIELDS = ("service_name", "cost", "unit", "category", "description", "image")


def _reconciliation() -> PaymentReconciliation:
    return PaymentReconciliation(get_payment_gateway(), currency=current_app.config.get("PAYMENT_CURRENCY", "usd"))


def _service_errors(values: dict[str, object]) -> list[str]:
    errors = []
    if "service_name" in values and not str(values["service_name"] or "").strip():
        errors.append("Service name is required")
    if "cost" in values:
        try:
            if float(values["cost"]) < 0:  # type: ignore[arg-type]
                errors.append("Cost must be a positive number")
        except (TypeError, ValueError):
            errors.append("Cost must be a number")
    if "unit" in values and values["unit"] not in SERVICE_UNITS:
        errors.append(f"Unit must be one of: {', '.join(SERVICE_UNITS)}")
    if "category" in values and values["category"] not in CATEGORIES:
        errors.append(f"Category must be one of: {', '.join(CATEGORIES)}")
    if "description" in values and not str(values["description"] or "").strip():
        errors.append("Description is required")
    return errors


def _clean_service_values(payload: dict[str, object]) -> dict[str, object]:
    values = {key: payload[key] for key in SERVICE_FIELDS if key in payload}
    for key in ("service_name", "unit", "category", "description"):
        if isinstance(values.get(key), str):
            values[key] = values[key].strip()  # type: ignore[union-attr]
    errors = _service_errors(values)
    if errors:
        raise InvalidInputError("Validation error.", code="validation_error", details={"errors": errors})
    if "cost" in values:
        values["cost"] = float(values["cost"])  # type: ignore[arg-type]
    if "image" in values:
        values["image"] = values["image"] or None
    return values


# --- Services ---


@bp_admin.post("/services")
@login_required
@roles_required("admin")
def create_service(actor: User) -> tuple[dict[str, object], int]:
    """Create a decoration service.
    ---
    tags:
      - Admin
    responses:
      201:
        description: Service created
      400:
        description: Missing or invalid fields
    """
    payload = request.get_json(silent=True) or {}
    required = ("service_name", "cost", "unit", "category", "description")
    if any(payload.get(key) in (None, "") for key in required):
        raise InvalidInputError("Please provide service_name, cost, unit, category, and description.")

    values = _clean_service_values(payload)
    service = Service(created_by_email=actor.email, **values)
    Store().save(service)
    return success_response(service.to_dict(), "Service created successfully.", 201)


@bp_admin.put("/services/<int:service_id>")
@login_required
@roles_required("admin")
def update_service(service_id: int, actor: User) -> tuple[dict[str, object], int]:
    store = Store()
    service = store.get_or_404(Service, service_id, "Service")
    values = _clean_service_values(request.get_json(silent=True) or {})
    for key, value in values.items():
        setattr(service, key, value)
    store.save(service)
    return success_response(service.to_dict(), "Service updated successfully.")


@bp_admin.delete("/services/<int:service_id>")
@login_required
@roles_required("admin")
def delete_service(service_id: int, actor: User) -> tuple[dict[str, object], int]:
    store = Store()
    service = store.get_or_404(Service, service_id, "Service")
    store.delete(service)
    return success_response(message="Service deleted successfully.")


# --- Bookings ---


@bp_admin.get("/bookings")
@login_required
@roles_required("admin")
def list_bookings(actor: User) -> tuple[dict[str, object], int]:
    """List all bookings, optionally filtered by status and paymentStatus."""
    status = request.args.get("status") or None
    payment_status = request.args.get("paymentStatus") or None
    if status and status not in BOOKING_STATUSES:
        raise InvalidInputError(f"status must be one of: {', '.join(BOOKING_STATUSES)}")
    if payment_status and payment_status not in BOOKING_PAYMENT_STATUSES:
        raise InvalidInputError(f"paymentStatus must be one of: {', '.join(BOOKING_PAYMENT_STATUSES)}")

    bookings = BookingLifecycle().list_all(status=status, payment_status=payment_status)
    return success_response([b.to_dict() for b in bookings], count=len(bookings))


@bp_admin.put("/bookings/<int:booking_id>/assign")
@login_required
@roles_required("admin")
def assign_decorator(booking_id: int, actor: User) -> tuple[dict[str, object], int]:
    """Assign an approved decorator to a booking.
    ---
    tags:
      - Admin
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            decoratorId:
              type: integer
    responses:
      200:
        description: Decorator assigned
      400:
        description: Decorator not approved or booking closed
      404:
        description: Booking or decorator not found
    """
    payload = request.get_json(silent=True) or {}
    booking = BookingLifecycle().assign(booking_id, payload.get("decoratorId"))
    data = booking.to_dict()
    data["decorator"] = booking.decorator.to_dict() if booking.decorator else None
    return success_response(data, "Decorator assigned successfully.")


# --- Users and decorators ---


@bp_admin.get("/users")
@login_required
@roles_required("admin")
def list_users(actor: User) -> tuple[dict[str, object], int]:
    try:
        users = User.query.order_by(User.created_at.desc(), User.user_id.desc()).all()
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch users", exc_info=exc)
        return jsonify({"success": False, "error": "database_error"}), 500
    return success_response([u.to_dict() for u in users], count=len(users))


@bp_admin.put("/users/<int:user_id>/make-decorator")
@login_required
@roles_required("admin")
def make_decorator(user_id: int, actor: User) -> tuple[dict[str, object], int]:
    """Promote a user to decorator with a pending profile.
    ---
    tags:
      - Admin
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            specialties:
              type: array
              items:
                type: string
    responses:
      200:
        description: User converted to decorator
      400:
        description: Invalid specialties
      404:
        description: User not found
      409:
        description: User is already a decorator
    """
    payload = request.get_json(silent=True) or {}
    user, decorator = DecoratorPromotion().promote(user_id, payload.get("specialties"))
    return success_response(
        {"user": user.to_dict(), "decorator": decorator.to_dict()},
        "User converted to decorator successfully. Decorator profile created with pending status.",
    )


@bp_admin.get("/decorators")
@login_required
@roles_required("admin")
def list_decorators(actor: User) -> tuple[dict[str, object], int]:
    decorators = DecoratorPromotion().list_all()
    return success_response([d.to_dict() for d in decorators], count=len(decorators))


@bp_admin.put("/decorators/<int:decorator_id>/approve")
@login_required
@roles_required("admin")
def approve_decorator(decorator_id: int, actor: User) -> tuple[dict[str, object], int]:
    decorator = DecoratorPromotion().approve(decorator_id)
    return success_response(decorator.to_dict(), "Decorator approved successfully.")


@bp_admin.put("/decorators/<int:decorator_id>/disable")
@login_required
@roles_required("admin")
def disable_decorator(decorator_id: int, actor: User) -> tuple[dict[str, object], int]:
    decorator = DecoratorPromotion().disable(decorator_id)
    return success_response(decorator.to_dict(), "Decorator disabled successfully.")


# --- Analytics ---


def _date_arg(name: str) -> datetime | None:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError as exc:
        raise InvalidInputError(f"{name} must be YYYY-MM-DD.", code="invalid_parameters") from exc


@bp_admin.get("/analytics/revenue")
@login_required
@roles_required("admin")
def revenue_analytics(actor: User) -> tuple[dict[str, object], int]:
    data = analytics.revenue(_date_arg("startDate"), _date_arg("endDate"))
    return success_response(data)


@bp_admin.get("/analytics/service-demand")
@login_required
@roles_required("admin")
def service_demand_analytics(actor: User) -> tuple[dict[str, object], int]:
    return success_response(analytics.service_demand())


# --- Payment reconciliation ---


@bp_admin.get("/payments/anomalies")
@login_required
@roles_required("admin")
def payment_anomalies(actor: User) -> tuple[dict[str, object], int]:
    """List succeeded payments whose booking was never marked paid."""
    payments = _reconciliation().find_anomalies()
    return success_response([p.to_dict() for p in payments], count=len(payments))


@bp_admin.post("/payments/<int:payment_id>/reconcile")
@login_required
@roles_required("admin")
def reconcile_payment(payment_id: int, actor: User) -> tuple[dict[str, object], int]:
    payment, booking = _reconciliation().repair(payment_id)
    return success_response(
        {"payment": payment.to_dict(), "booking": booking.to_dict()},
        "Booking settled from payment.",
    )
