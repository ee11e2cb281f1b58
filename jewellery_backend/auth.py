from functools import wraps
from typing import Optional

from firebase_admin import auth as firebase_auth
from firebase_admin.exceptions import FirebaseError
from flask import current_app, g, jsonify, request

from . import firebase


def extract_bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    return token or None


def authenticate_request():
    """Verify the Firebase ID token sent with the current request.

    On success the decoded token is stored on ``g.firebase_user`` and ``None``
    is returned. Otherwise the error response for the client is returned.
    """
    if getattr(g, "firebase_user", None) is not None:
        return None

    id_token = extract_bearer_token()
    if not id_token:
        current_app.logger.warning("Request without a valid Bearer token.")
        return (
            jsonify(
                {
                    "message": "Unauthorized: No authentication token provided or token format is invalid (expected 'Bearer <token>')."
                }
            ),
            401,
        )

    try:
        decoded_token = firebase.verify_id_token(id_token)
    except firebase_auth.ExpiredIdTokenError:
        return (
            jsonify(
                {
                    "message": "Unauthorized: Authentication token has expired. Please log in again."
                }
            ),
            401,
        )
    except firebase_auth.RevokedIdTokenError:
        return (
            jsonify(
                {"message": "Unauthorized: Authentication token was revoked. Please log in again."}
            ),
            401,
        )
    except (firebase_auth.InvalidIdTokenError, ValueError) as exc:
        current_app.logger.warning("Rejected ID token: %s", exc)
        return (
            jsonify(
                {"message": "Unauthorized: Invalid authentication token. Please log in again."}
            ),
            401,
        )
    except FirebaseError as exc:
        current_app.logger.error("Token verification failed: %s", exc)
        return (
            jsonify(
                {"message": "Unauthorized: Authentication failed. Please log in again."}
            ),
            401,
        )

    g.firebase_user = decoded_token
    return None


def require_admin_claim():
    auth_error = authenticate_request()
    if auth_error:
        return auth_error

    if g.firebase_user.get("admin") is not True:
        current_app.logger.warning(
            "Admin access denied for %s. Missing admin claim.",
            firebase.describe_user(g.firebase_user),
        )
        return (
            jsonify({"message": "Forbidden: You do not have administrator privileges."}),
            403,
        )
    return None


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        auth_error = authenticate_request()
        if auth_error:
            return auth_error
        return view(*args, **kwargs)

    return wrapper


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        admin_error = require_admin_claim()
        if admin_error:
            return admin_error
        return view(*args, **kwargs)

    return wrapper
