"""Public and client HTTP routes for the StyleDecor backend."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .auth import Identity, identity_required, login_required
from .errors import InvalidInputError, success_response
from .extensions import db
from .models import CATEGORIES, Service, User
from .services.bookings import BookingLifecycle
from .services.decorators import DecoratorPromotion
from .store import Store

bp = Blueprint("api", __name__)


@bp.get("/")
def index() -> tuple[dict[str, object], int]:
    return jsonify({"success": True, "message": "StyleDecor API is running", "version": "1.0.0"}), 200


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


@bp.get("/db-health")
def database_health() -> tuple[dict[str, str], int]:
    """Check connectivity to the configured database.
    ---
    tags:
      - Health
    responses:
      200:
        description: Database connection is ok.
      500:
        description: Database connection failed.
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        current_app.logger.exception("Database connectivity check failed", exc_info=exc)
        return jsonify({"database": "unavailable"}), 500

    return jsonify({"database": "ok"}), 200


# --- Registration ---


@bp.post("/register")
@identity_required
def register(identity: Identity) -> tuple[dict[str, object], int]:
    """Create the local profile for a verified identity.
    ---
    tags:
      - Authentication
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            email:
              type: string
            image:
              type: string
          required:
            - name
    responses:
      201:
        description: User registered
      200:
        description: User was already registered
      400:
        description: Invalid payload
      401:
        description: Missing or invalid token
      409:
        description: Email already in use
    """
    payload = request.get_json(silent=True) or {}

    existing = User.query.filter_by(firebase_uid=identity.subject_id).first()
    if existing is not None:
        return success_response(existing.to_dict(), "User already registered.")

    name = (payload.get("name") or "").strip()
    email = (identity.email or payload.get("email") or "").strip().lower()
    image = (payload.get("image") or "").strip() or None
    role = (payload.get("role") or "user").strip().lower()

    if not name or not email:
        raise InvalidInputError("name and email are required.")
    # Only plain users can self-register; other roles are granted by admins.
    if role != "user":
        raise InvalidInputError("role must be 'user'.", code="invalid_role")

    user = User(firebase_uid=identity.subject_id, name=name, email=email, image=image, role="user")
    Store().save(user)
    current_app.logger.info("Registered user %s", user.user_id)
    return success_response(user.to_dict(), "User registered successfully.", 201)


# --- Service catalogue ---


@bp.get("/services")
def list_services() -> tuple[dict[str, object], int]:
    """Return all services, optionally filtered by category.
    ---
    tags:
      - Services
    parameters:
      - name: category
        in: query
        type: string
    responses:
      200:
        description: List of services
    """
    category = (request.args.get("category") or "").strip()
    if category and category not in CATEGORIES:
        raise InvalidInputError(f"category must be one of: {', '.join(CATEGORIES)}")

    try:
        query = Service.query
        if category:
            query = query.filter(Service.category == category)
        services = query.order_by(Service.created_at.desc(), Service.service_id.desc()).all()
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to fetch services", exc_info=exc)
        return jsonify({"success": False, "error": "database_error"}), 500

    return success_response([s.to_dict() for s in services], count=len(services))


@bp.get("/services/<int:service_id>")
def get_service(service_id: int) -> tuple[dict[str, object], int]:
    service = Store().get_or_404(Service, service_id, "Service")
    return success_response(service.to_dict())


@bp.get("/decorators/top")
def top_decorators() -> tuple[dict[str, object], int]:
    """Return the highest-rated approved decorators."""
    try:
        limit = min(50, max(1, int(request.args.get("limit", 6))))
    except (TypeError, ValueError) as exc:
        current_app.logger.warning(f"Invalid limit parameter: {exc}")
        raise InvalidInputError("limit must be an integer.", code="invalid_parameters") from exc

    decorators = DecoratorPromotion().top_rated(limit)
    return success_response([d.to_dict() for d in decorators], count=len(decorators))


# --- Client bookings ---


@bp.post("/bookings")
@login_required
def create_booking(actor: User) -> tuple[dict[str, object], int]:
    """Create a booking for the authenticated user.
    ---
    tags:
      - Bookings
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            serviceId:
              type: integer
            date:
              type: string
              format: date-time
            location:
              type: string
          required:
            - serviceId
            - date
            - location
    responses:
      201:
        description: Booking created
      400:
        description: Missing fields or date not in the future
      404:
        description: Service not found
    """
    payload = request.get_json(silent=True) or {}
    booking = BookingLifecycle().create(
        actor,
        payload.get("serviceId"),
        payload.get("date"),
        payload.get("location"),
    )
    return success_response(booking.to_dict(), "Booking created successfully.", 201)


@bp.get("/bookings/me")
@login_required
def my_bookings(actor: User) -> tuple[dict[str, object], int]:
    bookings = BookingLifecycle().list_for_user(actor)
    return success_response([b.to_dict() for b in bookings], count=len(bookings))


@bp.delete("/bookings/<int:booking_id>")
@login_required
def cancel_booking(booking_id: int, actor: User) -> tuple[dict[str, object], int]:
    """Cancel a booking owned by the authenticated user.
    ---
    tags:
      - Bookings
    responses:
      200:
        description: Booking cancelled
      400:
        description: Booking is in progress, completed or already cancelled
      403:
        description: Booking belongs to another user
      404:
        description: Booking not found
    """
    booking = BookingLifecycle().cancel(booking_id, actor)
    return success_response(booking.to_dict(), "Booking cancelled successfully.")
