import re
from typing import Dict, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING

from .catalog import BOOLEAN_FLAGS, CatalogCategory

EXACT_MATCH_FIELDS = ("material", "gender", "occasion", "category", "gemstone", "type")
SORT_OPTIONS = {
    "priceAsc": ("price", ASCENDING),
    "priceDesc": ("price", DESCENDING),
    "ratingDesc": ("rating", DESCENDING),
}
DEFAULT_SORT = ("name", ASCENDING)


def build_catalog_query(
    category: CatalogCategory, args
) -> Tuple[Optional[Dict], List[Tuple[str, int]], Optional[str]]:
    """Translate list query parameters into a MongoDB filter and sort spec.

    Returns ``(query, sort, error)``; ``error`` is a client-facing message
    when a parameter cannot be used.
    """
    query: Dict = {}

    search = str(args.get("q") or "").strip()
    if search:
        try:
            re.compile(search)
        except re.error:
            return None, [], "The search text is not a valid pattern."
        query["name"] = {"$regex": search, "$options": "i"}

    for field in EXACT_MATCH_FIELDS + category.extra_fields:
        value = args.get(field)
        if value:
            query[field] = value

    price_filter: Dict[str, float] = {}
    for param, operator in (("minPrice", "$gte"), ("maxPrice", "$lte")):
        raw_value = args.get(param)
        if not raw_value:
            continue
        try:
            price_filter[operator] = float(raw_value)
        except ValueError:
            return None, [], f"{param} must be a valid number."
    if price_filter:
        query["price"] = price_filter

    for flag in BOOLEAN_FLAGS:
        if flag in args:
            query[flag] = args.get(flag) == "true"

    sort: List[Tuple[str, int]] = []
    sort_key = args.get("sort")
    if sort_key:
        sort.append(SORT_OPTIONS.get(sort_key, DEFAULT_SORT))
    if args.get("latest_designs") == "true":
        sort.append(("added_date", DESCENDING))

    return query, sort, None
