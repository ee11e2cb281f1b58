import mongomock
import pytest
import requests
from firebase_admin import auth as firebase_auth

from jewellery_backend import create_app, firebase

USER_TOKEN = "user-token"
ADMIN_TOKEN = "admin-token"
EXPIRED_TOKEN = "expired-token"
REVOKED_TOKEN = "revoked-token"
DECODED_TOKENS = {
    USER_TOKEN: {"uid": "user-1", "email": "shopper@example.com"},
    ADMIN_TOKEN: {"uid": "admin-1", "email": "owner@example.com", "admin": True},
}
FEED_BASE_URL = "https://feeds.example.test/jewellery"
ECO_FEED_BASE_URL = "https://feeds.example.test/eco"
ADMIN_CLAIM_SECRET = "let-me-in"


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeFeeds:
    """Stands in for ``requests.get`` and serves canned feed responses."""

    def __init__(self):
        self.responses = {}
        self.requested = []

    def add(self, url, payload, status_code=200):
        self.responses[url] = FakeResponse(payload, status_code)

    def add_catalog(self, feed_file, payload, status_code=200):
        self.add(f"{FEED_BASE_URL}/{feed_file}", payload, status_code)

    def fail(self, url, exc):
        self.responses[url] = exc

    def get(self, url, headers=None, timeout=None):
        self.requested.append(url)
        response = self.responses.get(url)
        if response is None:
            return FakeResponse({"message": "Not Found"}, 404)
        if isinstance(response, Exception):
            raise response
        return response


def fake_verify_id_token(id_token):
    if id_token == EXPIRED_TOKEN:
        raise firebase_auth.ExpiredIdTokenError("Token expired", None)
    if id_token == REVOKED_TOKEN:
        raise firebase_auth.RevokedIdTokenError("Token revoked")
    if id_token in DECODED_TOKENS:
        return dict(DECODED_TOKENS[id_token])
    raise firebase_auth.InvalidIdTokenError("Could not verify token")


@pytest.fixture(autouse=True)
def firebase_tokens(monkeypatch):
    monkeypatch.setattr(firebase, "verify_id_token", fake_verify_id_token)


@pytest.fixture
def feeds(monkeypatch):
    fake = FakeFeeds()
    monkeypatch.setattr(requests, "get", fake.get)
    return fake


@pytest.fixture
def database():
    return mongomock.MongoClient()["jewellery_test"]


@pytest.fixture
def app(database):
    return create_app(
        {
            "TESTING": True,
            "MONGO_DATABASE": database,
            "CATALOG_FEED_BASE_URL": FEED_BASE_URL,
            "ECO_GOODS_FEED_BASE_URL": ECO_FEED_BASE_URL,
            "ADMIN_CLAIM_SECRET_KEY": ADMIN_CLAIM_SECRET,
        }
    )


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def user_headers():
    return {"Authorization": f"Bearer {USER_TOKEN}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
