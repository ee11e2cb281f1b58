"""Thin wrappers around the Firebase Admin SDK.

Routes only talk to Firebase through these functions, which keeps the SDK
initialisation lazy (nothing is contacted until a request needs it).
"""

from typing import Dict, Iterable, Optional

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials, firestore
from flask import current_app

ORDERS_COLLECTION = "orders"
FIRESTORE_BATCH_LIMIT = 500


def get_firebase_app():
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    credentials_path = (current_app.config.get("FIREBASE_CREDENTIALS") or "").strip()
    credential = credentials.Certificate(credentials_path) if credentials_path else None
    firebase_app = firebase_admin.initialize_app(credential)
    current_app.logger.info(
        "Firebase Admin SDK initialised (%s credentials).",
        "service account" if credentials_path else "application default",
    )
    return firebase_app


def verify_id_token(id_token: str) -> Dict:
    return firebase_auth.verify_id_token(
        id_token, app=get_firebase_app(), check_revoked=True
    )


def set_admin_claim(uid: str):
    """Grant ``admin: true`` and force the user to fetch a fresh token."""
    firebase_app = get_firebase_app()
    firebase_auth.set_custom_user_claims(uid, {"admin": True}, app=firebase_app)
    firebase_auth.revoke_refresh_tokens(uid, app=firebase_app)


def add_order(order_data: Dict) -> str:
    client = firestore.client(app=get_firebase_app())
    _, document_ref = client.collection(ORDERS_COLLECTION).add(
        {**order_data, "createdAt": firestore.SERVER_TIMESTAMP}
    )
    return document_ref.id


def import_collection(collection_name: str, items: Iterable[Dict]) -> int:
    client = firestore.client(app=get_firebase_app())
    collection_ref = client.collection(collection_name)

    batch = client.batch()
    pending = 0
    total = 0
    for item in items:
        document_id = str(item.get("id") or item.get("_id"))
        batch.set(collection_ref.document(document_id), item)
        pending += 1
        total += 1
        if pending == FIRESTORE_BATCH_LIMIT:
            batch.commit()
            batch = client.batch()
            pending = 0

    if pending:
        batch.commit()
    return total


def describe_user(decoded_token: Optional[Dict]) -> str:
    if not decoded_token:
        return "unknown user"
    return decoded_token.get("email") or decoded_token.get("uid") or "unknown user"
