import os
import secrets
from typing import Dict, Optional

from dotenv import load_dotenv
from firebase_admin import auth as firebase_auth
from firebase_admin.exceptions import FirebaseError
from flask import Flask, g, jsonify, request
from flask_cors import CORS
from flask_pymongo import PyMongo
from google.api_core.exceptions import GoogleAPIError
from werkzeug.middleware.proxy_fix import ProxyFix

from . import firebase
from .auth import admin_required, login_required
from .catalog import CATALOG_CATEGORIES, CATEGORIES_BY_LEGACY_NAME
from .cli import register_commands
from .database import ensure_catalog_indexes
from .routes import create_catalog_blueprint, reload_catalog_response

load_dotenv()

DEFAULT_CATALOG_FEED_BASE_URL = "https://dannysoundarajd.github.io/jewellery-products-json"
DEFAULT_ECO_GOODS_FEED_BASE_URL = "https://ecobizhub-data.vercel.app"


def parse_allowed_origins(raw_value: Optional[str]):
    origins = [origin.strip() for origin in (raw_value or "").split(",")]
    origins = [origin for origin in origins if origin]
    return origins or "*"


def create_app(config_overrides: Optional[Dict] = None) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)

    trusted_proxy_hops_raw = os.getenv("TRUSTED_PROXY_HOPS", "1")
    try:
        trusted_proxy_hops = max(0, int(trusted_proxy_hops_raw))
    except (TypeError, ValueError):
        trusted_proxy_hops = 1
    if trusted_proxy_hops:
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=trusted_proxy_hops,
            x_proto=trusted_proxy_hops,
            x_host=trusted_proxy_hops,
            x_port=trusted_proxy_hops,
        )

    # --- Configuration ---
    try:
        feed_timeout = float(os.getenv("FEED_TIMEOUT_SECONDS", "15"))
    except ValueError:
        feed_timeout = 15.0
    app.config.update(
        MONGO_URI=os.getenv("MONGO_URI", "mongodb://localhost:27017/jewellery"),
        CATALOG_FEED_BASE_URL=os.getenv(
            "CATALOG_FEED_BASE_URL", DEFAULT_CATALOG_FEED_BASE_URL
        ),
        ECO_GOODS_FEED_BASE_URL=os.getenv(
            "ECO_GOODS_FEED_BASE_URL", DEFAULT_ECO_GOODS_FEED_BASE_URL
        ),
        FEED_TIMEOUT_SECONDS=feed_timeout,
        ADMIN_CLAIM_SECRET_KEY=(os.getenv("ADMIN_CLAIM_SECRET_KEY") or "").strip(),
        FIREBASE_CREDENTIALS=os.getenv("FIREBASE_CREDENTIALS", ""),
        CORS_ALLOWED_ORIGINS=os.getenv("CORS_ALLOWED_ORIGINS", ""),
        LOG_LEVEL=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        MONGO_DATABASE=None,
    )
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # --- Initialize extensions ---
    CORS(app, origins=parse_allowed_origins(app.config["CORS_ALLOWED_ORIGINS"]))

    db = app.config["MONGO_DATABASE"]
    if db is None:
        mongo = PyMongo(app)
        db = mongo.db
    app.extensions["jewellery_db"] = db

    try:
        ensure_catalog_indexes(db)
    except Exception as exc:
        app.logger.warning("Unable to ensure catalog indexes: %s", exc)

    for category in CATALOG_CATEGORIES:
        app.register_blueprint(create_catalog_blueprint(category))

    register_commands(app)

    @app.route("/", methods=["GET"])
    def welcome():
        return jsonify({"message": "Welcome to the Jewellery API!"})

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok"}), 200

    # --- Admin Routes ---

    @app.route("/admin/set-claim", methods=["POST"])
    def set_admin_claim():
        payload = request.get_json(silent=True) or {}
        uid = str(payload.get("uid") or "").strip()
        provided_secret = str(payload.get("secretKey") or "")
        configured_secret = app.config["ADMIN_CLAIM_SECRET_KEY"]

        if not configured_secret or not secrets.compare_digest(
            provided_secret.encode("utf-8"), configured_secret.encode("utf-8")
        ):
            app.logger.warning(
                "Unauthorized attempt to set admin claim with incorrect secret key."
            )
            return jsonify({"message": "Forbidden: Invalid secret key."}), 403

        if not uid:
            return jsonify({"message": "Bad Request: User UID is required."}), 400

        try:
            firebase.set_admin_claim(uid)
        except firebase_auth.UserNotFoundError:
            return jsonify({"message": f"User with UID '{uid}' not found."}), 404
        except (FirebaseError, ValueError) as exc:
            app.logger.error("Error setting custom claim: %s", exc)
            return (
                jsonify({"message": "Failed to set admin claim.", "error": str(exc)}),
                500,
            )

        app.logger.info("Granted admin claim to %s", uid)
        return jsonify(
            {
                "message": f"Successfully set 'admin: true' claim for user with UID: {uid}.",
                "note": "The user must log out and log back in to get a new token with the updated claim.",
            }
        )

    @app.route("/load-initial-data/<name>", methods=["POST"])
    @admin_required
    def load_initial_data(name: str):
        category = CATEGORIES_BY_LEGACY_NAME.get(name)
        if not category:
            return jsonify({"message": f"Unknown catalog '{name}'."}), 404
        return reload_catalog_response(category)

    # --- Orders ---

    @app.route("/api/place-order", methods=["POST"])
    @login_required
    def place_order():
        user_id = g.firebase_user.get("uid")
        if not user_id:
            return jsonify({"message": "User not authenticated."}), 401

        order_data = request.get_json(silent=True)
        if not isinstance(order_data, dict) or not order_data:
            return jsonify({"message": "Provide the order details as a JSON object."}), 400

        order_data["userId"] = user_id

        try:
            order_id = firebase.add_order(order_data)
        except (FirebaseError, GoogleAPIError) as exc:
            app.logger.error("Error processing order: %s", exc)
            return (
                jsonify({"message": "Failed to place order", "error": str(exc)}),
                500,
            )

        app.logger.info("Order %s saved to Firestore for %s", order_id, user_id)
        return jsonify({"message": "Order placed successfully!", "orderId": order_id})

    # --- Errors ---

    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({"message": "Resource not found."}), 404

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return jsonify({"message": "Method not allowed."}), 405

    @app.errorhandler(500)
    def internal_error(error):
        original = getattr(error, "original_exception", None) or error
        return (
            jsonify({"message": "Internal server error.", "error": str(original)}),
            500,
        )

    return app
