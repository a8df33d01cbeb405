"""Decorator profiles: promotion of an account, approval and listings."""
from __future__ import annotations

from typing import Any

from flask import current_app

from ..errors import ConflictError, InvalidInputError, NotFoundError
from ..models import CATEGORIES, Decorator, User
from ..saga import Saga, SagaStep
from ..store import Store


def clean_specialties(specialties: Any) -> list[str]:
    """Trim specialty tags, dropping non-strings and blanks."""
    if specialties is None:
        raise InvalidInputError("Specialties are required.")
    if not isinstance(specialties, list):
        raise InvalidInputError("Specialties must be an array.")
    cleaned = [s.strip() for s in specialties if isinstance(s, str) and s.strip()]
    if not cleaned:
        raise InvalidInputError("At least one valid, non-empty specialty is required.")
    unknown = sorted(set(cleaned) - set(CATEGORIES))
    if unknown:
        raise InvalidInputError(
            f"Specialties must be valid categories: {', '.join(CATEGORIES)}",
            details={"invalid": unknown},
        )
    # Keep first occurrence order.
    return list(dict.fromkeys(cleaned))


class DecoratorPromotion:
    def __init__(self, store: Store | None = None) -> None:
        self.store = store or Store()

    def promote(self, user_id: int, specialties: Any) -> tuple[User, Decorator]:
        """Create a pending decorator profile for ``user_id`` and switch its role.

        Runs as a two-step saga. If the role update fails after the profile
        was written, the profile is deleted before the error propagates.
        """
        cleaned = clean_specialties(specialties)
        user = self.store.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found.")

        existing = Decorator.query.filter_by(user_id=user.user_id).first()
        if user.role == "decorator" and existing is not None:
            raise ConflictError("User is already a decorator.")
        if existing is not None:
            # Profile left over without the role change; reuse it.
            current_app.logger.warning(
                "User %s has decorator profile %s without decorator role", user.user_id, existing.decorator_id
            )

        def create_profile(context: dict[str, Any]) -> Decorator:
            if existing is not None:
                return existing
            profile = Decorator(user_id=user.user_id, specialties=cleaned, status="pending")
            self.store.save(profile)
            context["created_profile"] = profile
            return profile

        def delete_profile(context: dict[str, Any]) -> None:
            profile = context.get("created_profile")
            if profile is not None:
                self.store.delete(profile)
                current_app.logger.info("Rolled back decorator profile for user %s", user.user_id)

        def update_role(context: dict[str, Any]) -> User:
            user.role = "decorator"
            self.store.save(user)
            return user

        saga = Saga(
            "promote-decorator",
            [
                SagaStep("profile", create_profile, delete_profile),
                SagaStep("role", update_role),
            ],
        )
        result = saga.run()
        current_app.logger.info("User %s promoted to decorator", user.user_id)
        return result["role"], result["profile"]

    def set_status(self, decorator_id: int, status: str) -> Decorator:
        decorator = self.store.get_or_404(Decorator, decorator_id, "Decorator")
        decorator.status = status
        self.store.save(decorator)
        return decorator

    def approve(self, decorator_id: int) -> Decorator:
        return self.set_status(decorator_id, "approved")

    def disable(self, decorator_id: int) -> Decorator:
        return self.set_status(decorator_id, "disabled")

    def list_all(self) -> list[Decorator]:
        return Decorator.query.order_by(Decorator.created_at.desc(), Decorator.decorator_id.desc()).all()

    def top_rated(self, limit: int = 6) -> list[Decorator]:
        return (
            Decorator.query.filter_by(status="approved")
            .order_by(Decorator.rating.desc(), Decorator.decorator_id.asc())
            .limit(limit)
            .all()
        )

    def profile_for(self, user: User) -> Decorator:
        decorator = Decorator.query.filter_by(user_id=user.user_id).first()
        if decorator is None:
            raise NotFoundError("Decorator profile not found.")
        return decorator
