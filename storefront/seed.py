# storefront/seed.py
"""Populate a fresh database with an admin, two customers and sample products.

Run with ``python -m storefront.seed``. Safe to run repeatedly.
"""
import asyncio
import logging

from storefront.core.config import Settings
from storefront.core.errors import ValidationError
from storefront.core.logging import configure_logging
from storefront.db import mongo
from storefront.services.auth_service import AuthService
from storefront.services.catalog_service import CatalogManager
from storefront.services.media import LocalMediaStore

logger = logging.getLogger("storefront.seed")

SAMPLE_USERS = [
    {"name": "User One", "email": "user1@thepresent.store", "password": "user1pass"},
    {"name": "User Two", "email": "user2@thepresent.store", "password": "user2pass"},
]

SAMPLE_PRODUCTS = [
    {"name": "Handmade Candle", "description": "Soy wax candle with cedar scent", "price": 18.5, "category": "home"},
    {"name": "Ceramic Mug", "description": "Glazed stoneware mug, 350ml", "price": 24.0, "category": "kitchen"},
    {"name": "Linen Tote", "description": "Natural linen everyday bag", "price": 32.0, "category": "accessories"},
    {"name": "Gift Card", "description": "Redeemable on any product", "price": 50.0, "category": "gifts"},
]


def ensure_user(auth: AuthService, name: str, email: str, password: str, role: str = "customer"):
    try:
        auth.create_user(name, email, password, role)
        logger.info(f"Created {role} {email}")
    except ValidationError:
        logger.info(f"{email} already exists, skipping")


async def seed(settings: Settings):
    client = mongo.connect(settings)
    try:
        db = mongo.get_database(client, settings)
        mongo.ensure_indexes(db)
        auth = AuthService(db, settings)
        ensure_user(auth, "Admin", settings.SEED_ADMIN_EMAIL, settings.SEED_ADMIN_PASSWORD, role="admin")
        for user in SAMPLE_USERS:
            ensure_user(auth, **user)

        # sample products carry no images, so the media store is never touched
        catalog = CatalogManager(db, LocalMediaStore(settings.UPLOAD_DIR, settings.UPLOAD_URL_PREFIX), settings)
        existing = {p.name for p in catalog.list_products()}
        for fields in SAMPLE_PRODUCTS:
            if fields["name"] in existing:
                continue
            product = await catalog.create_product(fields)
            logger.info(f"Created product {product.name} ({product.id})")
    finally:
        client.close()


if __name__ == "__main__":
    settings = Settings.from_env()
    configure_logging(settings.LOG_LEVEL)
    asyncio.run(seed(settings))
