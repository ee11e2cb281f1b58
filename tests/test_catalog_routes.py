from datetime import datetime

import pytest

from jewellery_backend import firebase
from jewellery_backend.firebase import verify_id_token as verify_with_firebase

from .conftest import EXPIRED_TOKEN, REVOKED_TOKEN


def seed_rings(database):
    database.rings.insert_many(
        [
            {
                "id": 1,
                "name": "Classic Gold Band",
                "price": 12000.0,
                "material": "Gold",
                "gender": "Men",
                "rating": 4.2,
                "is_featured": True,
                "is_fast_delivery": False,
                "added_date": datetime(2024, 1, 10),
            },
            {
                "id": 2,
                "name": "Diamond Solitaire Ring",
                "price": 54000.0,
                "material": "Platinum",
                "gender": "Women",
                "rating": 4.9,
                "is_featured": False,
                "is_fast_delivery": True,
                "added_date": datetime(2024, 3, 5),
            },
            {
                "id": 7,
                "name": "Rose Gold Stackable",
                "price": 8000.0,
                "material": "Gold",
                "gender": "Women",
                "rating": 3.8,
                "is_featured": True,
                "is_fast_delivery": True,
                "added_date": datetime(2023, 11, 20),
            },
        ]
    )


def ids_of(response):
    return [product["id"] for product in response.get_json()]


class TestAuthentication:
    def test_missing_token_is_rejected(self, client):
        response = client.get("/api/ring/")
        assert response.status_code == 401

    def test_non_bearer_header_is_rejected(self, client):
        response = client.get("/api/ring/", headers={"Authorization": "Token abc"})
        assert response.status_code == 401

    def test_invalid_token_is_rejected(self, client):
        response = client.get("/api/ring/", headers={"Authorization": "Bearer forged"})
        assert response.status_code == 401
        assert "Invalid authentication token" in response.get_json()["message"]

    def test_expired_token_has_its_own_message(self, client):
        response = client.get(
            "/api/ring/", headers={"Authorization": f"Bearer {EXPIRED_TOKEN}"}
        )
        assert response.status_code == 401
        assert "expired" in response.get_json()["message"]

    def test_revoked_token_has_its_own_message(self, client):
        response = client.get(
            "/api/ring/", headers={"Authorization": f"Bearer {REVOKED_TOKEN}"}
        )
        assert response.status_code == 401
        assert "revoked" in response.get_json()["message"]

    def test_tokens_are_checked_for_revocation(self, monkeypatch):
        calls = []

        def record(id_token, **kwargs):
            calls.append((id_token, kwargs))
            return {"uid": "user-1"}

        monkeypatch.setattr(firebase, "get_firebase_app", lambda: "firebase-app")
        monkeypatch.setattr(firebase.firebase_auth, "verify_id_token", record)

        assert verify_with_firebase("abc") == {"uid": "user-1"}
        assert calls == [("abc", {"app": "firebase-app", "check_revoked": True})]

    def test_cors_preflight_skips_authentication(self, client):
        response = client.options(
            "/api/ring/",
            headers={
                "Origin": "https://shop.example.com",
                "Access-Control-Request-Method": "GET",
                "Access-Control-Request-Headers": "authorization",
            },
        )
        assert 200 <= response.status_code < 300
        assert response.headers["Access-Control-Allow-Origin"] in (
            "*",
            "https://shop.example.com",
        )

    def test_admin_routes_need_the_admin_claim(self, client, user_headers):
        response = client.post(
            "/api/ring/add",
            json={"name": "Band", "price": 10, "image": "band.png"},
            headers=user_headers,
        )
        assert response.status_code == 403

        assert client.delete("/api/ring/delete/1", headers=user_headers).status_code == 403
        assert (
            client.patch(
                "/api/ring/update/1", json={"price": 1}, headers=user_headers
            ).status_code
            == 403
        )


class TestListProducts:
    @pytest.fixture(autouse=True)
    def rings(self, database):
        seed_rings(database)

    def test_lists_every_product_without_filters(self, client, user_headers):
        response = client.get("/api/ring", headers=user_headers)
        assert response.status_code == 200
        assert sorted(ids_of(response)) == [1, 2, 7]

    def test_products_are_serialized(self, client, user_headers):
        product = client.get("/api/ring/", headers=user_headers).get_json()[0]
        assert isinstance(product["_id"], str)
        assert product["added_date"].endswith("Z")

    def test_name_search_is_case_insensitive(self, client, user_headers):
        response = client.get("/api/ring/?q=gold", headers=user_headers)
        assert sorted(ids_of(response)) == [1, 7]

    def test_exact_match_fields(self, client, user_headers):
        response = client.get(
            "/api/ring/?material=Gold&gender=Women", headers=user_headers
        )
        assert ids_of(response) == [7]

    def test_price_range(self, client, user_headers):
        response = client.get(
            "/api/ring/?minPrice=9000&maxPrice=60000", headers=user_headers
        )
        assert sorted(ids_of(response)) == [1, 2]

    def test_boolean_flags_are_coerced(self, client, user_headers):
        featured = client.get("/api/ring/?is_featured=true", headers=user_headers)
        assert sorted(ids_of(featured)) == [1, 7]

        not_fast = client.get("/api/ring/?is_fast_delivery=nope", headers=user_headers)
        assert ids_of(not_fast) == [1]

    def test_sort_options(self, client, user_headers):
        ascending = client.get("/api/ring/?sort=priceAsc", headers=user_headers)
        assert ids_of(ascending) == [7, 1, 2]

        descending = client.get("/api/ring/?sort=priceDesc", headers=user_headers)
        assert ids_of(descending) == [2, 1, 7]

        by_rating = client.get("/api/ring/?sort=ratingDesc", headers=user_headers)
        assert ids_of(by_rating) == [2, 1, 7]

        by_name = client.get("/api/ring/?sort=whatever", headers=user_headers)
        assert ids_of(by_name) == [1, 2, 7]

    def test_latest_designs_orders_by_added_date(self, client, user_headers):
        response = client.get("/api/ring/?latest_designs=true", headers=user_headers)
        assert ids_of(response) == [2, 1, 7]

    def test_invalid_price_is_a_bad_request(self, client, user_headers):
        response = client.get("/api/ring/?minPrice=cheap", headers=user_headers)
        assert response.status_code == 400

    def test_invalid_search_pattern_is_a_bad_request(self, client, user_headers):
        response = client.get("/api/ring/?q=(unclosed", headers=user_headers)
        assert response.status_code == 400


class TestGetProduct:
    def test_returns_the_product(self, client, database, user_headers):
        seed_rings(database)
        response = client.get("/api/ring/2", headers=user_headers)
        assert response.status_code == 200
        assert response.get_json()["name"] == "Diamond Solitaire Ring"

    def test_missing_product_is_404(self, client, user_headers):
        response = client.get("/api/ring/404", headers=user_headers)
        assert response.status_code == 404
        assert response.get_json()["message"] == "Ring with ID: 404 not found."

    def test_non_numeric_id_is_400(self, client, user_headers):
        response = client.get("/api/ring/abc", headers=user_headers)
        assert response.status_code == 400
        assert response.get_json()["message"] == "Invalid ID format."


class TestAddProduct:
    def test_assigns_the_next_id(self, client, database, admin_headers):
        seed_rings(database)
        response = client.post(
            "/api/ring/add",
            json={"name": "Emerald Halo", "price": "15999.5", "image": "halo.png"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        product = response.get_json()["product"]
        assert product["id"] == 8
        assert product["price"] == 15999.5
        assert database.rings.count_documents({"id": 8}) == 1

    def test_first_product_gets_id_one(self, client, admin_headers):
        response = client.post(
            "/api/gifting/add",
            json={"name": "Silver Coin", "price": 999, "image": "coin.png"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.get_json()["product"]["id"] == 1

    def test_consecutive_adds_get_distinct_ids(self, client, admin_headers):
        created = [
            client.post(
                "/api/trending/add",
                json={"name": f"Charm {index}", "price": 100, "image": "charm.png"},
                headers=admin_headers,
            ).get_json()["product"]["id"]
            for index in range(3)
        ]
        assert created == [1, 2, 3]

    def test_client_supplied_id_is_ignored(self, client, database, admin_headers):
        seed_rings(database)
        response = client.post(
            "/api/ring/add",
            json={"id": 2, "name": "Copycat", "price": 10, "image": "copy.png"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.get_json()["product"]["id"] == 8

    def test_applies_schema_defaults_and_drops_unknown_fields(
        self, client, database, admin_headers
    ):
        response = client.post(
            "/api/necklace/add",
            json={
                "name": "Pearl Strand",
                "price": 4200,
                "image": "pearl.png",
                "secret_markup": 3,
            },
            headers=admin_headers,
        )
        product = response.get_json()["product"]
        assert product["category"] == "Necklace"
        assert product["gender"] == "Unisex"
        assert product["occasion"] == "General"
        assert product["reviews"] == []
        assert product["is_featured"] is False
        assert "secret_markup" not in database.necklaces.find_one({"id": 1})

    def test_count_reviews_for_flat_categories(self, client, admin_headers):
        response = client.post(
            "/api/solitary/add",
            json={"name": "Solitaire", "price": 1, "image": "s.png", "reviews": "12"},
            headers=admin_headers,
        )
        assert response.get_json()["product"]["reviews"] == 12

    def test_prices_are_stored_as_given(self, client, database, admin_headers):
        response = client.post(
            "/api/ring/add",
            json={"name": "Fine Band", "price": 19.999, "image": "band.png", "rating": 4.567},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.get_json()["product"]["price"] == 19.999
        stored = database.rings.find_one({"name": "Fine Band"})
        assert stored["price"] == 19.999
        assert stored["rating"] == 4.567

    def test_fractional_review_counts_are_rejected(self, client, database, admin_headers):
        response = client.post(
            "/api/gifting/add",
            json={"name": "Coin", "price": 1, "image": "c.png", "reviews": 3.7},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert "whole number" in response.get_json()["message"]
        assert database.giftings.count_documents({}) == 0

    def test_missing_required_fields(self, client, admin_headers):
        response = client.post(
            "/api/ring/add", json={"name": "No price"}, headers=admin_headers
        )
        assert response.status_code == 400
        assert "price" in response.get_json()["message"]
        assert "image" in response.get_json()["message"]

    def test_rejects_invalid_types(self, client, admin_headers):
        response = client.post(
            "/api/ring/add",
            json={"name": "Ring", "price": "free", "image": "r.png"},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_requires_a_json_object(self, client, admin_headers):
        response = client.post("/api/ring/add", json=[1, 2], headers=admin_headers)
        assert response.status_code == 400


class TestUpdateProduct:
    def test_partial_update(self, client, database, admin_headers):
        seed_rings(database)
        response = client.patch(
            "/api/ring/update/1",
            json={"price": 12500, "has_special_deal": True},
            headers=admin_headers,
        )
        assert response.status_code == 200
        product = response.get_json()["product"]
        assert product["price"] == 12500
        assert product["has_special_deal"] is True
        assert product["name"] == "Classic Gold Band"

    def test_id_cannot_be_changed(self, client, database, admin_headers):
        seed_rings(database)
        response = client.patch(
            "/api/ring/update/1", json={"id": 99}, headers=admin_headers
        )
        assert response.status_code == 400
        assert database.rings.count_documents({"id": 1}) == 1

    def test_missing_product_is_404(self, client, admin_headers):
        response = client.patch(
            "/api/ring/update/5", json={"price": 1}, headers=admin_headers
        )
        assert response.status_code == 404

    def test_non_numeric_id_is_400(self, client, admin_headers):
        response = client.patch(
            "/api/ring/update/five", json={"price": 1}, headers=admin_headers
        )
        assert response.status_code == 400


class TestDeleteProduct:
    def test_deletes_then_reports_missing(self, client, database, admin_headers):
        seed_rings(database)
        response = client.delete("/api/ring/delete/7", headers=admin_headers)
        assert response.status_code == 200
        assert database.rings.count_documents({"id": 7}) == 0

        again = client.delete("/api/ring/delete/7", headers=admin_headers)
        assert again.status_code == 404

    def test_best_seller_prefix(self, client, database, admin_headers):
        database.best_sellers.insert_one({"id": 3, "name": "Kada", "price": 10})
        response = client.delete("/api/bestseller/delete/3", headers=admin_headers)
        assert response.status_code == 200
        assert response.get_json()["message"] == "Best seller deleted successfully!"
