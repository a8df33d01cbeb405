from flask import Flask
from flask_cors import CORS

from .auth import FirebaseIdentityVerifier, SignedTokenIdentityVerifier
from .config import Config
from .errors import register_error_handlers
from .extensions import IDENTITY_VERIFIER_KEY, PAYMENT_GATEWAY_KEY, db
from .payment_gateway import StripeGateway


def _build_identity_verifier(app: Flask):
    if app.config.get("IDENTITY_VERIFIER") is not None:
        return app.config["IDENTITY_VERIFIER"]
    if app.config.get("AUTH_BACKEND") == "signed":
        return SignedTokenIdentityVerifier(app.config["SECRET_KEY"], app.config.get("AUTH_TOKEN_MAX_AGE", 86400))
    return FirebaseIdentityVerifier(
        app.config.get("FIREBASE_PROJECT_ID"),
        app.config.get("FIREBASE_CLIENT_EMAIL"),
        app.config.get("FIREBASE_PRIVATE_KEY"),
    )


def _build_payment_gateway(app: Flask):
    if app.config.get("PAYMENT_GATEWAY") is not None:
        return app.config["PAYMENT_GATEWAY"]
    return StripeGateway(app.config.get("STRIPE_SECRET_KEY"), app.config.get("STRIPE_WEBHOOK_SECRET"))


def register_routes(app: Flask) -> None:
    from .routes import bp
    from .routes_admin import bp_admin
    from .routes_decorator import bp_decorator
    from .routes_payments import bp_payments

    app.register_blueprint(bp)
    app.register_blueprint(bp_admin)
    app.register_blueprint(bp_decorator)
    app.register_blueprint(bp_payments)


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)

    if isinstance(config_object, dict):
        app.config.from_mapping(config_object)
    elif config_object:
        app.config.from_object(config_object)
    else:
        app.config.from_envvar("APP_SETTINGS", silent=True)

    db.init_app(app)

    origins = [o.strip() for o in app.config.get("FRONTEND_URL", "*").split(",") if o.strip()]
    CORS(app,
         origins=origins or ["*"],
         supports_credentials=True,
         allow_headers=["Content-Type", "Authorization"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )

    # Providers are injected so tests can swap in fakes through config.
    app.extensions[IDENTITY_VERIFIER_KEY] = _build_identity_verifier(app)
    app.extensions[PAYMENT_GATEWAY_KEY] = _build_payment_gateway(app)

    register_routes(app)
    register_error_handlers(app)

    return app
