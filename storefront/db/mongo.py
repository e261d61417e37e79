# storefront/db/mongo.py
import logging
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import (
    ExecutionTimeout,
    NetworkTimeout,
    PyMongoError,
    ServerSelectionTimeoutError,
)

from storefront.core.config import Settings
from storefront.core.errors import UpstreamFailure, UpstreamTimeout

logger = logging.getLogger("storefront.db")

USERS = "users"
PRODUCTS = "products"
ORDERS = "orders"


def connect(settings: Settings) -> MongoClient:
    # short timeouts so an unreachable database fails the request instead of hanging it
    return MongoClient(
        settings.MONGODB_URI,
        serverSelectionTimeoutMS=settings.MONGO_TIMEOUT_MS,
        connectTimeoutMS=settings.MONGO_TIMEOUT_MS,
        socketTimeoutMS=settings.MONGO_TIMEOUT_MS,
        tz_aware=True,
    )


def get_database(client: MongoClient, settings: Settings) -> Database:
    return client[settings.MONGODB_DB]


def ensure_indexes(db: Database):
    # MongoDB skips indexes that already exist
    db[USERS].create_index("email", unique=True)
    db[PRODUCTS].create_index("category")
    db[PRODUCTS].create_index([("created_at", DESCENDING)])
    db[ORDERS].create_index([("user", ASCENDING), ("created_at", DESCENDING)])
    db[ORDERS].create_index([("created_at", DESCENDING)])


def parse_object_id(value) -> Optional[ObjectId]:
    """ObjectId for ``value``, or None when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str):
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def classify_db_error(exc: PyMongoError) -> UpstreamFailure:
    if isinstance(exc, (ServerSelectionTimeoutError, NetworkTimeout, ExecutionTimeout)):
        return UpstreamTimeout("Database timed out")
    return UpstreamFailure("Database unavailable")
