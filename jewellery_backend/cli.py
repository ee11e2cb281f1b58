import click
from firebase_admin.exceptions import FirebaseError
from flask import current_app
from google.api_core.exceptions import GoogleAPIError
from pymongo.errors import PyMongoError

from . import firebase
from .catalog import CATALOG_CATEGORIES, find_category
from .database import get_db
from .loader import FeedError, build_feed_url, fetch_feed, reload_catalog

ECO_GOODS_COLLECTIONS = (
    "herbal_products",
    "handicrafts",
    "natural_fabrics",
    "organic_foods",
    "upcycled_goods",
)


def register_commands(app):
    @app.cli.command("seed-catalog")
    @click.argument("categories", nargs=-1)
    def seed_catalog(categories):
        """Reseed catalog collections from the product feeds.

        Seeds every collection unless CATEGORIES names some of them.
        """
        selected = []
        for name in categories:
            category = find_category(name)
            if not category:
                raise click.BadParameter(f"Unknown catalog '{name}'.")
            selected.append(category)

        db = get_db()
        total_loaded = 0
        for category in selected or CATALOG_CATEGORIES:
            try:
                loaded = len(reload_catalog(db, category))
            except (FeedError, PyMongoError) as exc:
                current_app.logger.error("Error loading %s data: %s", category.key, exc)
                click.echo(f"Skipped {category.key}: {exc}", err=True)
                continue
            total_loaded += loaded
            click.echo(f"Loaded {loaded} {category.key} items.")

        click.echo(f"Database seeding complete! Total items loaded: {total_loaded}")

    @app.cli.command("import-eco-goods")
    def import_eco_goods():
        """Copy the eco-goods feeds into same-named Firestore collections."""
        config = current_app.config
        total_imported = 0
        for collection_name in ECO_GOODS_COLLECTIONS:
            url = build_feed_url(config["ECO_GOODS_FEED_BASE_URL"], f"{collection_name}.json")
            try:
                items = fetch_feed(url, timeout=config["FEED_TIMEOUT_SECONDS"])
                if not isinstance(items, list):
                    raise FeedError(f"Data from {url} is not an array.")
                if not all(isinstance(item, dict) for item in items):
                    raise FeedError(f"Data from {url} contains entries that are not objects.")
                imported = firebase.import_collection(collection_name, items)
            except (FeedError, FirebaseError, GoogleAPIError) as exc:
                current_app.logger.error(
                    "Error importing data for collection '%s': %s", collection_name, exc
                )
                click.echo(f"Skipped {collection_name}: {exc}", err=True)
                continue
            total_imported += imported
            click.echo(
                f"Imported {imported} documents to collection '{collection_name}'."
            )

        click.echo(f"Data import finished. Total documents imported: {total_imported}")
