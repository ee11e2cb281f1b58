from flask import current_app
from pymongo import DESCENDING, ReturnDocument

from .catalog import CATALOG_CATEGORIES, CatalogCategory

COUNTERS_COLLECTION = "counters"


def get_db():
    return current_app.extensions["jewellery_db"]


def get_catalog_collection(category: CatalogCategory):
    return get_db()[category.collection]


def ensure_catalog_indexes(db):
    for category in CATALOG_CATEGORIES:
        db[category.collection].create_index("id", unique=True)


def next_product_id(db, category: CatalogCategory) -> int:
    """Allocate the id for a new product in ``category``.

    The counter is first raised to the largest stored id, then incremented
    atomically, so concurrent adds never receive the same id.
    """
    newest = db[category.collection].find_one(
        {}, projection={"id": 1}, sort=[("id", DESCENDING)]
    )
    current_max = 0
    if newest and newest.get("id") is not None:
        current_max = int(newest["id"])

    counters = db[COUNTERS_COLLECTION]
    counters.update_one(
        {"_id": category.collection},
        {"$max": {"seq": current_max}},
        upsert=True,
    )
    counter = counters.find_one_and_update(
        {"_id": category.collection},
        {"$inc": {"seq": 1}},
        return_document=ReturnDocument.AFTER,
    )
    return int(counter["seq"])


def reset_product_ids(db, category: CatalogCategory):
    db[COUNTERS_COLLECTION].delete_one({"_id": category.collection})
