"""Reseeding catalog collections from the static product feeds."""

from typing import Dict, List

import requests
from flask import current_app

from .catalog import CatalogCategory, ProductFieldError, normalize_feed_product
from .database import reset_product_ids

FEED_REQUEST_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache", "Expires": "0"}


class FeedError(Exception):
    """The external feed could not be fetched or did not hold usable products."""


def build_feed_url(base_url: str, feed_file: str) -> str:
    return f"{str(base_url).rstrip('/')}/{feed_file}"


def fetch_feed(url: str, timeout: float = 15):
    try:
        response = requests.get(url, headers=FEED_REQUEST_HEADERS, timeout=timeout)
    except requests.RequestException as exc:
        raise FeedError(f"Could not fetch feed {url}: {exc}") from exc

    if response.status_code >= 400:
        hint = (
            " The URL might be incorrect or the JSON file is missing."
            if response.status_code == 404
            else ""
        )
        raise FeedError(f"Feed {url} answered with HTTP {response.status_code}.{hint}")

    try:
        return response.json()
    except ValueError as exc:
        raise FeedError(f"Feed {url} did not return valid JSON.") from exc


def extract_feed_products(category: CatalogCategory, payload) -> List[Dict]:
    """Collect product entries from a flat or nested-by-subkey feed."""
    if not isinstance(payload, dict):
        raise FeedError(f"The {category.key} feed must be a JSON object.")

    products: List[Dict] = []
    for key in category.feed_keys:
        section = payload.get(key)
        if isinstance(section, list):
            products.extend(section)
        elif category.nested_feed and isinstance(section, dict):
            for group in section.values():
                if isinstance(group, list):
                    products.extend(group)
    return products


def prepare_feed_products(category: CatalogCategory, raw_products: List[Dict]) -> List[Dict]:
    products = []
    seen_ids = set()
    for raw in raw_products:
        try:
            product = normalize_feed_product(category, raw)
        except ProductFieldError as exc:
            raise FeedError(f"Invalid {category.key} product in feed: {exc}") from exc
        if product["id"] in seen_ids:
            raise FeedError(f"Duplicate {category.key} product id {product['id']} in feed.")
        seen_ids.add(product["id"])
        products.append(product)
    return products


def reload_catalog(db, category: CatalogCategory) -> List[Dict]:
    """Replace every document of ``category`` with the feed's products.

    The feed is fetched and fully normalized before anything is deleted, so a
    failing feed leaves the current collection untouched.
    """
    config = current_app.config
    url = build_feed_url(config["CATALOG_FEED_BASE_URL"], category.feed_file)
    current_app.logger.info("Loading %s data from %s", category.key, url)

    payload = fetch_feed(url, timeout=config["FEED_TIMEOUT_SECONDS"])
    products = prepare_feed_products(category, extract_feed_products(category, payload))

    if not products:
        current_app.logger.warning("No %s data found to insert.", category.key)
        return []

    collection = db[category.collection]
    collection.delete_many({})
    collection.insert_many(products)
    reset_product_ids(db, category)

    current_app.logger.info(
        "Successfully loaded %s %s items", len(products), category.key
    )
    return products
