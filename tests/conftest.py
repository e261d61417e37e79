import mongomock
import pytest
from fastapi.testclient import TestClient

from storefront.core.config import Settings
from storefront.core.errors import UpstreamFailure, UpstreamTimeout
from storefront.db import mongo
from storefront.main import create_app
from storefront.models.schemas import ProductImage
from storefront.services.auth_service import AuthService, to_current_user
from storefront.services.catalog_service import CatalogManager
from storefront.services.common import utcnow
from storefront.services.media import ImageUpload, MediaStore
from storefront.services.orders_service import OrderManager


class FakeMediaStore(MediaStore):
    """Records every call; can be told to fail deletes or specific uploads."""

    def __init__(self):
        self.uploaded = []
        self.deleted = []
        self.fail_deletes = False
        self.fail_uploads = set()
        self.delete_error = None

    async def upload(self, image: ImageUpload) -> ProductImage:
        if image.filename in self.fail_uploads:
            raise UpstreamTimeout("Media store timed out")
        n = len(self.uploaded) + 1
        stored = ProductImage(url=f"https://media.test/{n}/{image.filename}", public_id=f"asset-{n}")
        self.uploaded.append(stored)
        return stored

    async def delete(self, image: ProductImage) -> bool:
        self.deleted.append(image)
        if self.delete_error is not None:
            raise self.delete_error
        if self.fail_deletes:
            raise UpstreamFailure("Media store request failed")
        return True


def png(name="photo.png", size=64) -> ImageUpload:
    return ImageUpload(filename=name, content_type="image/png", data=b"\x89PNG" + b"0" * size)


def make_user(db, name="Alice", role="customer", email=None):
    doc = {
        "name": name,
        "email": email or f"{name.lower()}@example.com",
        "password": "not-a-real-hash",
        "role": role,
        "created_at": utcnow(),
    }
    doc["_id"] = db[mongo.USERS].insert_one(doc).inserted_id
    return to_current_user(doc)


def add_product(db, name="Mug", price=10.0, category="kitchen", images=None):
    now = utcnow()
    doc = {
        "name": name,
        "description": f"{name} description",
        "price": price,
        "category": category,
        "images": images or [],
        "created_at": now,
        "updated_at": now,
    }
    return str(db[mongo.PRODUCTS].insert_one(doc).inserted_id)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        JWT_SECRET="test-secret",
        MONGODB_DB="storefront_test",
        UPLOAD_DIR=str(tmp_path / "uploads"),
        AUTH_RATE_LIMIT=1000,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def mongo_client():
    return mongomock.MongoClient()


@pytest.fixture
def db(mongo_client, settings):
    database = mongo.get_database(mongo_client, settings)
    mongo.ensure_indexes(database)
    return database


@pytest.fixture
def media():
    return FakeMediaStore()


@pytest.fixture
def auth(db, settings):
    return AuthService(db, settings)


@pytest.fixture
def catalog(db, media, settings):
    return CatalogManager(db, media, settings)


@pytest.fixture
def orders(db):
    return OrderManager(db)


@pytest.fixture
def admin(db):
    return make_user(db, "Root", role="admin")


@pytest.fixture
def customer(db):
    return make_user(db, "Alice")


@pytest.fixture
def other_customer(db):
    return make_user(db, "Bob")


@pytest.fixture
def client(settings, mongo_client, media, db):
    app = create_app(settings, mongo_client=mongo_client, media=media)
    with TestClient(app) as c:
        yield c


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
