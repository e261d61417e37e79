import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from storefront.api.deps import get_admin_user, get_catalog, get_optional_user, read_uploads
from storefront.models.schemas import CurrentUser, MessageOut, ProductOut
from storefront.services.catalog_service import CatalogManager

logger = logging.getLogger("storefront.api.products")

router = APIRouter()


def _fields(**values) -> dict:
    # browsers post untouched inputs as "", which means "not supplied"
    return {k: v for k, v in values.items() if v is not None and v.strip()}


@router.get("", response_model=List[ProductOut])
def list_products(
    category: Optional[str] = None,
    viewer: Optional[CurrentUser] = Depends(get_optional_user),
    catalog: CatalogManager = Depends(get_catalog),
):
    products = catalog.list_products(category)
    logger.debug(f"Listed {len(products)} products for {viewer.id if viewer else 'guest'}")
    return products


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: str, catalog: CatalogManager = Depends(get_catalog)):
    return catalog.get_product(product_id)


@router.post("", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
async def create_product(
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    image_urls: Optional[List[str]] = Form(None),
    admin: CurrentUser = Depends(get_admin_user),
    catalog: CatalogManager = Depends(get_catalog),
):
    """Create a product from form fields plus uploaded and/or already-hosted images."""
    files = await read_uploads(images)
    fields = _fields(name=name, description=description, price=price, category=category)
    return await catalog.create_product(fields, files, image_urls)


@router.put("/{product_id}")
async def update_product(
    product_id: str,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    image_urls: Optional[List[str]] = Form(None),
    admin: CurrentUser = Depends(get_admin_user),
    catalog: CatalogManager = Depends(get_catalog),
):
    """Partial update. New files replace all images; else image_urls replaces the list."""
    files = await read_uploads(images)
    fields = _fields(name=name, description=description, price=price, category=category)
    result = await catalog.update_product(product_id, fields, files, image_urls)
    body = result.value.model_dump(mode="json")
    if result.degraded:
        body["warnings"] = result.warnings()
    return body


@router.delete("/{product_id}", response_model=MessageOut)
async def delete_product(
    product_id: str,
    admin: CurrentUser = Depends(get_admin_user),
    catalog: CatalogManager = Depends(get_catalog),
):
    result = await catalog.delete_product(product_id)
    return MessageOut(message="Product deleted successfully", warnings=result.warnings())
