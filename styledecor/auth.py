"""Identity resolution and role checks.

Bearer credentials are verified by an injected ``IdentityVerifier`` and mapped
to a local ``User`` record. Views receive that record as an explicit ``actor``
keyword argument instead of reading it from request-global state.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Callable, Protocol

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from firebase_admin.exceptions import FirebaseError
from flask import current_app, request
from itsdangerous import BadData, URLSafeTimedSerializer

from .errors import AuthError, ExternalProviderError, ForbiddenError, NotFoundError
from .extensions import get_identity_verifier
from .models import User


@dataclass(frozen=True)
class Identity:
    subject_id: str
    email: str | None


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> Identity: ...


class FirebaseIdentityVerifier:
    """Verify Firebase ID tokens with the Admin SDK."""

    APP_NAME = "styledecor"

    def __init__(self, project_id: str | None, client_email: str | None, private_key: str | None) -> None:
        self.project_id = project_id
        self.client_email = client_email
        self.private_key = private_key
        self._app = None

    def _get_app(self):
        if self._app is not None:
            return self._app
        if not (self.project_id and self.client_email and self.private_key):
            raise ExternalProviderError(
                "Authentication is not configured.",
                code="auth_not_configured",
            )
        try:
            self._app = firebase_admin.get_app(self.APP_NAME)
        except ValueError:
            cred = credentials.Certificate(
                {
                    "type": "service_account",
                    "project_id": self.project_id,
                    "client_email": self.client_email,
                    "private_key": self.private_key.replace("\\n", "\n"),
                    "token_uri": "https://oauth2.googleapis.com/token",
                }
            )
            self._app = firebase_admin.initialize_app(cred, {"projectId": self.project_id}, name=self.APP_NAME)
            current_app.logger.info("Firebase Admin SDK initialized for project %s", self.project_id)
        return self._app

    def verify(self, token: str) -> Identity:
        app = self._get_app()
        try:
            decoded = firebase_auth.verify_id_token(token, app=app)
        except (ValueError, FirebaseError) as exc:
            raise AuthError("Invalid or expired token.", details={"detail": str(exc)}) from exc
        return Identity(subject_id=decoded["uid"], email=decoded.get("email"))


class SignedTokenIdentityVerifier:
    """Locally signed tokens for development and tests."""

    def __init__(self, secret_key: str, max_age: int = 86400) -> None:
        self.max_age = max_age
        self._serializer = URLSafeTimedSerializer(secret_key, salt="auth-token")

    def issue(self, subject_id: str, email: str | None = None) -> str:
        return self._serializer.dumps({"sub": subject_id, "email": email})

    def verify(self, token: str) -> Identity:
        try:
            payload = self._serializer.loads(token, max_age=self.max_age)
        except BadData as exc:
            raise AuthError("Invalid or expired token.") from exc
        return Identity(subject_id=payload["sub"], email=payload.get("email"))


def _bearer_token() -> str:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise AuthError("No token provided. Please include a Bearer token in the Authorization header.")
    token = auth_header[7:].strip()
    if not token:
        raise AuthError("Invalid token format.")
    return token


def resolve_identity() -> Identity:
    return get_identity_verifier().verify(_bearer_token())


def resolve_actor() -> User:
    identity = resolve_identity()
    user = User.query.filter_by(firebase_uid=identity.subject_id).first()
    if user is None:
        raise NotFoundError("User not found. Please complete your profile registration.")
    return user


def identity_required(view: Callable) -> Callable:
    """Pass the verified ``identity`` to views that run before registration."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        return view(*args, identity=resolve_identity(), **kwargs)

    return wrapper


def login_required(view: Callable) -> Callable:
    @wraps(view)
    def wrapper(*args, **kwargs):
        return view(*args, actor=resolve_actor(), **kwargs)

    return wrapper


def roles_required(*roles: str) -> Callable[[Callable], Callable]:
    """Reject actors whose role is not in ``roles``; apply below ``login_required``."""

    def decorator(view: Callable) -> Callable:
        @wraps(view)
        def wrapper(*args, actor: User, **kwargs):
            if actor.role not in roles:
                raise ForbiddenError(
                    "Access denied. This route requires one of the following roles: "
                    f"{', '.join(roles)}. Your role: {actor.role}"
                )
            return view(*args, actor=actor, **kwargs)

        return wrapper

    return decorator
