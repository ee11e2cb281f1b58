"""Catalog collection registry and product document normalization.

Every jewellery sub-category lives in its own MongoDB collection with a flat,
mostly shared schema. The differences (feed layout, how ``reviews`` is stored,
per-category defaults) are captured in :class:`CatalogCategory` so one set of
routes and one loader can serve all of them.
"""

import math
import re
from datetime import datetime
from typing import Dict, List, NamedTuple, Optional, Tuple

STRING_FIELDS = (
    "name",
    "image",
    "description",
    "category",
    "material",
    "gemstone",
    "type",
    "gender",
    "occasion",
)
BOOLEAN_FLAGS = (
    "is_featured",
    "is_bestseller",
    "has_special_deal",
    "is_fast_delivery",
)
REQUIRED_FIELDS = ("name", "price", "image")
PADDED_IMAGE_SLOTS = 5


class CatalogCategory(NamedTuple):
    key: str
    label: str
    url_prefix: str
    collection: str
    legacy_load_name: str
    feed_file: str
    feed_keys: Tuple[str, ...]
    nested_feed: bool = False
    review_list: bool = False
    defaults: Dict[str, object] = {}
    forced_values: Dict[str, object] = {}
    extra_fields: Tuple[str, ...] = ()

    @property
    def fields(self) -> Tuple[str, ...]:
        return (
            ("id", "price", "rating", "reviews", "images", "added_date")
            + STRING_FIELDS
            + BOOLEAN_FLAGS
            + self.extra_fields
        )


CATALOG_CATEGORIES: Tuple[CatalogCategory, ...] = (
    CatalogCategory(
        key="bracelet",
        label="Bracelet",
        url_prefix="/api/bracelet",
        collection="bracelets",
        legacy_load_name="bracelets",
        feed_file="braclets.json",
        feed_keys=("bracelets", "bangles"),
        review_list=True,
        defaults={"category": "Bracelet"},
    ),
    CatalogCategory(
        key="earring",
        label="Earring",
        url_prefix="/api/earring",
        collection="earrings",
        legacy_load_name="earrings",
        feed_file="earings.json",
        feed_keys=("earrings",),
        review_list=True,
        defaults={"category": "Earrings"},
    ),
    CatalogCategory(
        key="necklace",
        label="Necklace",
        url_prefix="/api/necklace",
        collection="necklaces",
        legacy_load_name="necklaces",
        feed_file="necklaces.json",
        feed_keys=("necklaces",),
        review_list=True,
        defaults={"category": "Necklace", "gender": "Unisex", "occasion": "General"},
    ),
    CatalogCategory(
        key="ring",
        label="Ring",
        url_prefix="/api/ring",
        collection="rings",
        legacy_load_name="rings",
        feed_file="rings.json",
        feed_keys=("rings",),
        review_list=True,
        defaults={"category": "Ring"},
    ),
    CatalogCategory(
        key="mangalsutra",
        label="Mangalsutra",
        url_prefix="/api/mangalsutra",
        collection="mangalsutras",
        legacy_load_name="mangalsutra",
        feed_file="mangalsutra.json",
        feed_keys=("mangalsutras",),
        defaults={"category": "Mangalsutra", "gender": "Women"},
        extra_fields=("region",),
    ),
    CatalogCategory(
        key="gifting",
        label="Gifting item",
        url_prefix="/api/gifting",
        collection="giftings",
        legacy_load_name="gifting",
        feed_file="gifting.json",
        feed_keys=("gifting",),
        extra_fields=("price_range",),
    ),
    CatalogCategory(
        key="other",
        label="Product",
        url_prefix="/api/other",
        collection="others",
        legacy_load_name="other",
        feed_file="other.json",
        feed_keys=("other_jeweleries", "mangalsutras", "other_items"),
    ),
    CatalogCategory(
        key="solitary",
        label="Solitary",
        url_prefix="/api/solitary",
        collection="solitaries",
        legacy_load_name="solitaries",
        feed_file="solitaires.json",
        feed_keys=("solitaires",),
    ),
    CatalogCategory(
        key="best_seller",
        label="Best seller",
        url_prefix="/api/bestseller",
        collection="best_sellers",
        legacy_load_name="best_sellers",
        feed_file="best_sellers.json",
        feed_keys=("best_sellers",),
        nested_feed=True,
        forced_values={"is_bestseller": True},
    ),
    CatalogCategory(
        key="new_arrival",
        label="New arrival",
        url_prefix="/api/new_arrival",
        collection="new_arrivals",
        legacy_load_name="new_arrivals",
        feed_file="new_arrivals.json",
        feed_keys=("new_arrivals",),
        nested_feed=True,
    ),
    CatalogCategory(
        key="trending",
        label="Trending item",
        url_prefix="/api/trending",
        collection="trendings",
        legacy_load_name="trending",
        feed_file="trending.json",
        feed_keys=("trending",),
        nested_feed=True,
    ),
)

CATEGORIES_BY_KEY = {category.key: category for category in CATALOG_CATEGORIES}
CATEGORIES_BY_LEGACY_NAME = {
    category.legacy_load_name: category for category in CATALOG_CATEGORIES
}


class ProductFieldError(ValueError):
    """A product field could not be coerced to its schema type."""


def find_category(name: Optional[str]) -> Optional[CatalogCategory]:
    normalized = str(name or "").strip().lower()
    return CATEGORIES_BY_KEY.get(normalized) or CATEGORIES_BY_LEGACY_NAME.get(
        normalized
    )


def parse_iso_date(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not value:
        return None
    candidate = str(value).strip()
    if not candidate:
        return None
    normalized = candidate.replace("Z", "+00:00")
    if re.fullmatch(r"\d{4}-\d{2}-\d{2}", candidate):
        normalized = f"{candidate}T00:00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        # MongoDB hands back naive UTC datetimes, store them the same way.
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


def parse_flag(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes"}
    if isinstance(value, (int, float)):
        return bool(value)
    return False


def safe_float(value, default=0.0):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number


def _coerce_field(category: CatalogCategory, field: str, value):
    if field == "id":
        if isinstance(value, bool):
            raise ProductFieldError("Product id must be an integer.")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ProductFieldError("Product id must be an integer.")
        if not number.is_integer():
            raise ProductFieldError("Product id must be an integer.")
        return int(number)

    if field in ("price", "rating"):
        if isinstance(value, bool):
            raise ProductFieldError(f"{field.capitalize()} must be a valid number.")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ProductFieldError(f"{field.capitalize()} must be a valid number.")
        if not math.isfinite(number):
            raise ProductFieldError(f"{field.capitalize()} must be a valid number.")
        if number < 0:
            raise ProductFieldError(f"{field.capitalize()} cannot be negative.")
        return number

    if field == "reviews":
        if category.review_list:
            if not isinstance(value, list):
                raise ProductFieldError("Reviews must be a list of review texts.")
            return [str(review) for review in value if review is not None]
        if isinstance(value, bool):
            raise ProductFieldError("Reviews must be a whole number.")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ProductFieldError("Reviews must be a whole number.")
        if not number.is_integer():
            raise ProductFieldError("Reviews must be a whole number.")
        count = int(number)
        if count < 0:
            raise ProductFieldError("Reviews cannot be negative.")
        return count

    if field == "images":
        if not isinstance(value, list):
            raise ProductFieldError("Images must be a list of image URLs.")
        return ["" if image is None else str(image) for image in value]

    if field == "added_date":
        parsed = parse_iso_date(value)
        if parsed is None:
            raise ProductFieldError("Added date must be an ISO 8601 date.")
        return parsed

    if field in BOOLEAN_FLAGS:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
            return value.strip().lower() == "true"
        raise ProductFieldError(f"{field} must be true or false.")

    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise ProductFieldError(f"{field} must be text.")
    return str(value).strip()


def apply_schema_defaults(category: CatalogCategory, product: Dict) -> Dict:
    product.setdefault("rating", 0)
    product.setdefault("reviews", [] if category.review_list else 0)
    product.setdefault("images", [])
    for flag in BOOLEAN_FLAGS:
        product.setdefault(flag, False)
    for field, value in category.defaults.items():
        if not product.get(field):
            product[field] = value
    product.setdefault("added_date", datetime.utcnow())
    return product


def build_product_document(
    category: CatalogCategory, payload: Dict, *, partial: bool = False
) -> Tuple[Optional[Dict], Optional[str]]:
    """Coerce a client payload into a catalog document.

    Unknown fields are dropped. ``id`` is never taken from the payload since
    it is allocated (on add) or fixed by the URL (on update). With
    ``partial=True`` only the supplied fields are returned and no defaults are
    applied.
    """
    document: Dict = {}
    for field in category.fields:
        if field == "id" or field not in payload:
            continue
        try:
            document[field] = _coerce_field(category, field, payload[field])
        except ProductFieldError as exc:
            return None, str(exc)

    if partial:
        if not document:
            return None, "Provide at least one product field to update."
        for field in REQUIRED_FIELDS:
            if field in document and document[field] in (None, ""):
                return None, f"A product {field} is required."
        return document, None

    missing = [field for field in REQUIRED_FIELDS if document.get(field) in (None, "")]
    if missing:
        return None, f"Missing required product fields: {', '.join(missing)}."

    return apply_schema_defaults(category, document), None


def normalize_feed_product(category: CatalogCategory, raw: Dict) -> Dict:
    """Normalize one product taken from an external feed.

    Feeds are looser than client payloads: reviews arrive as either counts or
    lists, image galleries may be missing, and dates may be absent. Anything
    that still cannot be stored raises :class:`ProductFieldError`.
    """
    if not isinstance(raw, dict):
        raise ProductFieldError("Feed entries must be JSON objects.")

    product: Dict = {}
    product["id"] = _coerce_field(category, "id", raw.get("id"))

    name = str(raw.get("name") or "").strip()
    if not name:
        raise ProductFieldError(f"Product {product['id']} has no name.")
    product["name"] = name
    product["price"] = _coerce_field(category, "price", raw.get("price"))
    product["rating"] = max(0.0, safe_float(raw.get("rating")))

    raw_reviews = raw.get("reviews")
    if category.review_list:
        product["reviews"] = (
            [str(review) for review in raw_reviews if review is not None]
            if isinstance(raw_reviews, list)
            else []
        )
    elif isinstance(raw_reviews, list):
        product["reviews"] = len(raw_reviews)
    else:
        product["reviews"] = max(0, int(safe_float(raw_reviews)))

    image = str(raw.get("image") or "")
    product["image"] = image
    raw_images = raw.get("images")
    if isinstance(raw_images, list) and raw_images:
        product["images"] = [str(entry) for entry in raw_images if entry is not None]
    else:
        product["images"] = [image] + [""] * (PADDED_IMAGE_SLOTS - 1)

    for field in STRING_FIELDS + category.extra_fields:
        if field in product or raw.get(field) is None:
            continue
        value = raw[field]
        if isinstance(value, (dict, list)):
            continue
        product[field] = str(value).strip()

    for flag in BOOLEAN_FLAGS:
        product[flag] = parse_flag(raw.get(flag, False))

    product["added_date"] = parse_iso_date(raw.get("added_date")) or datetime.utcnow()

    product.update(category.forced_values)
    return apply_schema_defaults(category, product)


def serialize_product(document: Optional[Dict]) -> Dict:
    if not document:
        return {}
    serialized = {}
    for key, value in document.items():
        if key == "_id":
            serialized["_id"] = str(value)
        elif isinstance(value, datetime):
            serialized[key] = value.isoformat() + "Z"
        else:
            serialized[key] = value
    return serialized


def serialize_products(documents) -> List[Dict]:
    return [serialize_product(document) for document in documents]
