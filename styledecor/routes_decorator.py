"""Decorator routes: assigned projects and progress updates."""
from __future__ import annotations

from flask import Blueprint, request

from .auth import login_required, roles_required
from .errors import InvalidInputError, success_response
from .models import User
from .services.bookings import BookingLifecycle
from .services.decorators import DecoratorPromotion

bp_decorator = Blueprint("decorator", __name__, url_prefix="/decorator")


@bp_decorator.get("/projects")
@login_required
@roles_required("decorator")
def my_projects(actor: User) -> tuple[dict[str, object], int]:
    """List bookings assigned to the authenticated decorator.
    ---
    tags:
      - Decorator
    responses:
      200:
        description: Assigned bookings ordered by date
      403:
        description: Decorator account is not approved
      404:
        description: Decorator profile not found
    """
    decorator = DecoratorPromotion().profile_for(actor)
    bookings = BookingLifecycle().list_for_decorator(decorator)
    return success_response([b.to_dict() for b in bookings], count=len(bookings))


@bp_decorator.put("/project/<int:booking_id>/status")
@login_required
@roles_required("decorator")
def update_project_status(booking_id: int, actor: User) -> tuple[dict[str, object], int]:
    """Advance the coarse status of an assigned booking.
    ---
    tags:
      - Decorator
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            status:
              type: string
              enum: [in-progress, completed]
    responses:
      200:
        description: Status updated
      400:
        description: Invalid status or transition
      403:
        description: Booking is not assigned to this decorator
    """
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if not status:
        raise InvalidInputError("Please provide status.")

    decorator = DecoratorPromotion().profile_for(actor)
    booking = BookingLifecycle().advance_status(booking_id, decorator.decorator_id, status)
    return success_response(booking.to_dict(), "Project status updated successfully.")


@bp_decorator.put("/project/<int:booking_id>/status1")
@login_required
@roles_required("decorator")
def update_project_stage(booking_id: int, actor: User) -> tuple[dict[str, object], int]:
    payload = request.get_json(silent=True) or {}
    stage = payload.get("status1")
    if not stage:
        raise InvalidInputError("Please provide status1.")

    decorator = DecoratorPromotion().profile_for(actor)
    booking = BookingLifecycle().advance_on_site_stage(booking_id, decorator.decorator_id, stage)
    return success_response(booking.to_dict(), "Project stage updated successfully.")
