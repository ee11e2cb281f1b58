from flask import Blueprint, current_app, jsonify, request
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from .auth import admin_required, authenticate_request
from .catalog import CatalogCategory, build_product_document, serialize_product, serialize_products
from .database import get_catalog_collection, get_db, next_product_id
from .filters import build_catalog_query
from .loader import FeedError, reload_catalog


def parse_product_id(raw_id):
    try:
        return int(str(raw_id).strip()), None
    except (TypeError, ValueError):
        return None, (jsonify({"message": "Invalid ID format."}), 400)


def database_error_response(action: str, exc: Exception):
    current_app.logger.error("Failed to %s: %s", action, exc)
    return (
        jsonify({"message": f"Failed to {action}.", "error": str(exc)}),
        500,
    )


def reload_catalog_response(category: CatalogCategory):
    try:
        products = reload_catalog(get_db(), category)
    except FeedError as exc:
        current_app.logger.error("Error loading %s data: %s", category.key, exc)
        return (
            jsonify(
                {
                    "message": f"Failed to load {category.key} data.",
                    "error": str(exc),
                }
            ),
            502,
        )
    except PyMongoError as exc:
        return database_error_response(f"load {category.key} data", exc)

    return jsonify(
        {
            "message": f"Successfully loaded {len(products)} items.",
            "count": len(products),
            "data": serialize_products(products),
        }
    )


def create_catalog_blueprint(category: CatalogCategory) -> Blueprint:
    blueprint = Blueprint(
        f"catalog_{category.key}", __name__, url_prefix=category.url_prefix
    )
    label = category.label

    @blueprint.before_request
    def require_firebase_user():
        if request.method == "OPTIONS":
            return None
        return authenticate_request()

    @blueprint.route("/load-data", methods=["POST"])
    @admin_required
    def load_data():
        return reload_catalog_response(category)

    @blueprint.route("", methods=["GET"])
    @blueprint.route("/", methods=["GET"])
    def list_products():
        query, sort, query_error = build_catalog_query(category, request.args)
        if query_error:
            return jsonify({"message": query_error}), 400

        try:
            cursor = get_catalog_collection(category).find(query)
            if sort:
                cursor = cursor.sort(sort)
            products = serialize_products(cursor)
        except PyMongoError as exc:
            current_app.logger.warning("Listing %s failed: %s", category.key, exc)
            return jsonify({"message": str(exc)}), 400

        return jsonify(products)

    @blueprint.route("/<product_id>", methods=["GET"])
    def get_product(product_id: str):
        numeric_id, id_error = parse_product_id(product_id)
        if id_error:
            return id_error

        try:
            product = get_catalog_collection(category).find_one({"id": numeric_id})
        except PyMongoError as exc:
            return database_error_response(f"load {category.key} {numeric_id}", exc)

        if not product:
            return (
                jsonify({"message": f"{label} with ID: {numeric_id} not found."}),
                404,
            )
        return jsonify(serialize_product(product))

    @blueprint.route("/add", methods=["POST"])
    @admin_required
    def add_product():
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return (
                jsonify({"message": "Provide the product details as a JSON object."}),
                400,
            )

        product, validation_error = build_product_document(category, payload)
        if validation_error:
            return jsonify({"message": f"Failed to add {label.lower()}: {validation_error}"}), 400

        db = get_db()
        try:
            product["id"] = next_product_id(db, category)
            get_catalog_collection(category).insert_one(product)
        except DuplicateKeyError:
            return (
                jsonify({"message": f"Another {label.lower()} already uses that ID. Please retry."}),
                409,
            )
        except PyMongoError as exc:
            return database_error_response(f"add {label.lower()}", exc)

        current_app.logger.info("Added %s %s", category.key, product["id"])
        return (
            jsonify(
                {
                    "message": f"{label} added successfully!",
                    "product": serialize_product(product),
                }
            ),
            201,
        )

    @blueprint.route("/update/<product_id>", methods=["PATCH"])
    @admin_required
    def update_product(product_id: str):
        numeric_id, id_error = parse_product_id(product_id)
        if id_error:
            return id_error

        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return (
                jsonify({"message": "Provide the fields to update as a JSON object."}),
                400,
            )

        changes, validation_error = build_product_document(
            category, payload, partial=True
        )
        if validation_error:
            return (
                jsonify({"message": f"Failed to update {label.lower()}: {validation_error}"}),
                400,
            )

        try:
            updated = get_catalog_collection(category).find_one_and_update(
                {"id": numeric_id},
                {"$set": changes},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as exc:
            return database_error_response(f"update {label.lower()}", exc)

        if not updated:
            return (
                jsonify({"message": f"{label} with ID: {numeric_id} not found."}),
                404,
            )

        return jsonify(
            {
                "message": f"{label} updated successfully!",
                "product": serialize_product(updated),
            }
        )

    @blueprint.route("/delete/<product_id>", methods=["DELETE"])
    @admin_required
    def delete_product(product_id: str):
        numeric_id, id_error = parse_product_id(product_id)
        if id_error:
            return id_error

        try:
            deleted = get_catalog_collection(category).find_one_and_delete(
                {"id": numeric_id}
            )
        except PyMongoError as exc:
            return database_error_response(f"delete {label.lower()}", exc)

        if not deleted:
            return (
                jsonify({"message": f"{label} with ID: {numeric_id} not found."}),
                404,
            )

        current_app.logger.info("Deleted %s %s", category.key, numeric_id)
        return jsonify({"message": f"{label} deleted successfully!"})

    return blueprint
