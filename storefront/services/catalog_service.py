"""Product catalog workflow.

The catalog owns the consistency between product records and the media store:

* create: upload new files, append any already-hosted URLs, persist.
* update: new files replace every stored image (old assets are deleted best-effort),
  otherwise a replacement URL list is taken verbatim, otherwise images stay as is.
* delete: drop every asset best-effort, then the record.

Asset deletion never fails the enclosing operation; failures come back on the
``OperationResult`` instead.
"""
import asyncio
import logging
from typing import List, Optional, Sequence

from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from storefront.core.config import Settings
from storefront.core.errors import NotFound, UpstreamFailure, ValidationError
from storefront.db.mongo import PRODUCTS, parse_object_id
from storefront.models.schemas import ProductCreate, ProductImage, ProductOut, ProductUpdate
from storefront.services.common import (
    OperationResult,
    SideFailure,
    first_or_default,
    parse_input,
    utcnow,
)
from storefront.services.media import ImageUpload, MediaStore

logger = logging.getLogger("storefront.catalog")

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/gif")


def to_product(doc: dict) -> ProductOut:
    images = [ProductImage(**img) for img in doc.get("images") or []]
    thumbnail = first_or_default(images)
    return ProductOut(
        id=str(doc["_id"]),
        name=doc.get("name", ""),
        description=doc.get("description", ""),
        price=doc.get("price", 0),
        category=doc.get("category", ""),
        images=images,
        image_url=thumbnail.url if thumbnail else "",
        created_at=doc.get("created_at"),
        updated_at=doc.get("updated_at"),
    )


def clean_urls(urls: Optional[Sequence[str]]) -> List[str]:
    return [u.strip() for u in urls or [] if u and u.strip()]


class CatalogManager:
    def __init__(self, db: Database, media: MediaStore, settings: Settings):
        self.products = db[PRODUCTS]
        self.media = media
        self.settings = settings

    # --- validation ---

    def validate_images(self, files: Sequence[ImageUpload]):
        if len(files) > self.settings.MAX_PRODUCT_IMAGES:
            raise ValidationError(
                "Invalid file upload",
                {"images": f"At most {self.settings.MAX_PRODUCT_IMAGES} images are allowed"},
            )
        for f in files:
            if f.content_type not in ALLOWED_IMAGE_TYPES:
                raise ValidationError(
                    "Invalid file upload", {"file": "Only JPG, PNG and GIF images are allowed"}
                )
            if f.size > self.settings.MAX_IMAGE_BYTES:
                limit_mb = self.settings.MAX_IMAGE_BYTES // (1024 * 1024)
                raise ValidationError(
                    "Invalid file upload", {"file": f"File size must be less than {limit_mb}MB"}
                )
            if f.size == 0:
                raise ValidationError("Invalid file upload", {"file": "File is empty"})

    def _find(self, product_id: str) -> dict:
        oid = parse_object_id(product_id)
        doc = self.products.find_one({"_id": oid}) if oid else None
        if not doc:
            raise NotFound("Product not found")
        return doc

    # --- media helpers ---

    async def _upload_all(self, files: Sequence[ImageUpload]) -> List[ProductImage]:
        if not files:
            return []
        results = await asyncio.gather(
            *(self.media.upload(f) for f in files), return_exceptions=True
        )
        uploaded = [r for r in results if isinstance(r, ProductImage)]
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            # don't leave half of a batch behind in the store
            failures = await self._delete_assets(uploaded, "rollback upload")
            for failure in failures:
                logger.warning(failure.describe())
            raise errors[0]
        return uploaded

    async def _delete_assets(self, images: Sequence[ProductImage], operation: str) -> List[SideFailure]:
        failures = []
        for image in images:
            try:
                deleted = await self.media.delete(image)
            except UpstreamFailure as exc:
                logger.warning(f"{operation}: could not delete {image.url}: {exc.message}")
                failures.append(SideFailure(operation, image.url, exc.message))
                continue
            except Exception as exc:
                logger.exception(f"{operation}: unexpected error deleting {image.url}")
                failures.append(SideFailure(operation, image.url, str(exc) or type(exc).__name__))
                continue
            if not deleted:
                logger.debug(f"{operation}: {image.url} is not a hosted asset, skipped")
        return failures

    # --- reads ---

    def list_products(self, category: Optional[str] = None) -> List[ProductOut]:
        query = {"category": category.strip()} if category and category.strip() else {}
        cursor = self.products.find(query).sort("created_at", DESCENDING)
        return [to_product(doc) for doc in cursor]

    def get_product(self, product_id: str) -> ProductOut:
        return to_product(self._find(product_id))

    # --- mutations ---

    async def upload_image(self, image: ImageUpload) -> ProductImage:
        self.validate_images([image])
        stored = await self.media.upload(image)
        logger.info(f"Image uploaded: {stored.url}")
        return stored

    async def create_product(
        self,
        fields,
        files: Sequence[ImageUpload] = (),
        existing_urls: Optional[Sequence[str]] = None,
    ) -> ProductOut:
        fields = parse_input(ProductCreate, fields, "Invalid product data")
        self.validate_images(files)

        uploaded = await self._upload_all(files)
        images = uploaded + [ProductImage(url=u) for u in clean_urls(existing_urls)]

        now = utcnow()
        doc = {
            **fields.model_dump(),
            "images": [img.model_dump() for img in images],
            "created_at": now,
            "updated_at": now,
        }
        doc["_id"] = self.products.insert_one(doc).inserted_id
        logger.info(f"Product created: {doc['_id']} with {len(images)} image(s)")
        return to_product(doc)

    async def update_product(
        self,
        product_id: str,
        fields=None,
        files: Sequence[ImageUpload] = (),
        replacement_urls: Optional[Sequence[str]] = None,
    ) -> OperationResult[ProductOut]:
        changes = parse_input(ProductUpdate, fields or {}, "Invalid product data").changes()
        self.validate_images(files)
        current = self._find(product_id)
        side_failures: List[SideFailure] = []

        if files:
            new_images = await self._upload_all(files)
            old_images = [ProductImage(**img) for img in current.get("images") or []]
            side_failures = await self._delete_assets(old_images, "delete replaced image")
            changes["images"] = [img.model_dump() for img in new_images]
        elif replacement_urls is not None:
            # externally managed assets, nothing to clean up
            changes["images"] = [ProductImage(url=u).model_dump() for u in clean_urls(replacement_urls)]

        changes["updated_at"] = utcnow()
        updated = self.products.find_one_and_update(
            {"_id": current["_id"]},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            # deleted while we were uploading
            raise NotFound("Product not found")
        logger.info(f"Product updated: {product_id} ({', '.join(sorted(changes))})")
        return OperationResult(to_product(updated), side_failures)

    async def delete_product(self, product_id: str) -> OperationResult[str]:
        current = self._find(product_id)
        images = [ProductImage(**img) for img in current.get("images") or []]
        side_failures = await self._delete_assets(images, "delete product image")

        self.products.delete_one({"_id": current["_id"]})
        if side_failures:
            logger.warning(
                f"Product deleted: {product_id}; {len(side_failures)} asset(s) left orphaned"
            )
        else:
            logger.info(f"Product deleted: {product_id}")
        return OperationResult(product_id, side_failures)
