"""pytest configuration and shared fixtures."""
from __future__ import annotations

import json
import sys
from datetime import datetime, timedelta, timezone
from itertools import count
from pathlib import Path

import pytest

# Ensure the project root is available on sys.path so tests can import the app package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from styledecor import create_app  # noqa: E402
from styledecor.errors import ExternalProviderError, InvalidInputError  # noqa: E402
from styledecor.extensions import IDENTITY_VERIFIER_KEY, db  # noqa: E402
from styledecor.models import Booking, Decorator, Service, User  # noqa: E402
from styledecor.payment_gateway import ProviderIntent  # noqa: E402


class FakeGateway:
    """In-memory payment provider.

    Intents start as ``requires_payment_method``; tests move them along with
    ``set_status`` and make lookups fail by adding ids to ``missing``.
    """

    def __init__(self) -> None:
        self.intents: dict[str, ProviderIntent] = {}
        self.created: list[ProviderIntent] = []
        self.missing: set[str] = set()
        self._ids = count(1)

    def create_intent(self, amount, currency, metadata):
        intent_id = f"pi_test_{next(self._ids)}"
        intent = ProviderIntent(
            id=intent_id,
            status="requires_payment_method",
            client_secret=f"{intent_id}_secret",
            amount=amount,
        )
        self.intents[intent_id] = intent
        self.created.append(intent)
        self.last_metadata = metadata
        self.last_currency = currency
        return intent

    def retrieve_intent(self, intent_id):
        if intent_id in self.missing or intent_id not in self.intents:
            raise ExternalProviderError("Invalid Stripe payment intent.", code="invalid_payment_intent")
        return self.intents[intent_id]

    def set_status(self, intent_id, status):
        old = self.intents[intent_id]
        self.intents[intent_id] = ProviderIntent(old.id, status, old.client_secret, old.amount)

    def construct_event(self, payload, signature):
        if signature != "valid-signature":
            raise InvalidInputError("Invalid webhook signature.", code="invalid_signature")
        return json.loads(payload)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def app(gateway):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "SECRET_KEY": "test-secret",
        "AUTH_BACKEND": "signed",
        "PAYMENT_GATEWAY": gateway,
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    """Build Authorization headers for an identity subject."""

    def _headers(subject_id: str, email: str | None = None) -> dict[str, str]:
        token = app.extensions[IDENTITY_VERIFIER_KEY].issue(subject_id, email)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def make_user(app, auth_headers):
    """Create a registered user and return ``(user_id, headers)``."""
    serial = count(1)

    def _make(role: str = "user", name: str = "Test User", email: str | None = None):
        n = next(serial)
        uid = f"{role}-uid-{n}"
        with app.app_context():
            user = User(firebase_uid=uid, name=name, email=email or f"{role}{n}@example.com", role=role)
            db.session.add(user)
            db.session.commit()
            user_id = user.user_id
            user_email = user.email
        return user_id, auth_headers(uid, user_email)

    return _make


@pytest.fixture
def make_decorator(app, make_user):
    """Create a decorator account and profile; returns ``(decorator_id, headers)``."""

    def _make(status: str = "approved", rating: float = 4.5, specialties=None):
        user_id, headers = make_user(role="decorator", name="Dana Decorator")
        with app.app_context():
            profile = Decorator(
                user_id=user_id,
                specialties=specialties or ["interior"],
                rating=rating,
                status=status,
            )
            db.session.add(profile)
            db.session.commit()
            decorator_id = profile.decorator_id
        return decorator_id, headers

    return _make


@pytest.fixture
def make_service(app):
    def _make(name: str = "Living Room Makeover", cost: float = 150.0, category: str = "interior"):
        with app.app_context():
            service = Service(
                service_name=name,
                cost=cost,
                unit="per room",
                category=category,
                description="Full styling of one room",
                created_by_email="admin@example.com",
            )
            db.session.add(service)
            db.session.commit()
            return service.service_id

    return _make


@pytest.fixture
def make_booking(app):
    def _make(user_id: int, service_id: int, status: str = "pending", decorator_id: int | None = None,
              payment_status: str = "pending", on_site_stage: str | None = None, days: int = 7):
        with app.app_context():
            booking = Booking(
                user_id=user_id,
                service_id=service_id,
                decorator_id=decorator_id,
                date=datetime.now(timezone.utc) + timedelta(days=days),
                location="12 Garden Road, Dhaka",
                status=status,
                payment_status=payment_status,
                on_site_stage=on_site_stage,
            )
            db.session.add(booking)
            db.session.commit()
            return booking.booking_id

    return _make
