"""Shared Flask extensions and injected provider lookups."""
from __future__ import annotations

from flask import current_app
from flask_sqlalchemy import SQLAlchemy

# SQLAlchemy database instance shared across the app.
db = SQLAlchemy()

IDENTITY_VERIFIER_KEY = "identity_verifier"
PAYMENT_GATEWAY_KEY = "payment_gateway"


def get_identity_verifier():
    """Return the identity verifier configured on the running app."""
    return current_app.extensions[IDENTITY_VERIFIER_KEY]


def get_payment_gateway():
    """Return the payment gateway configured on the running app."""
    return current_app.extensions[PAYMENT_GATEWAY_KEY]
