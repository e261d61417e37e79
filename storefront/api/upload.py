from fastapi import APIRouter, Depends, File, UploadFile

from storefront.api.deps import get_admin_user, get_catalog, read_uploads
from storefront.core.errors import ValidationError
from storefront.models.schemas import CurrentUser, UploadOut
from storefront.services.catalog_service import CatalogManager

router = APIRouter()


@router.post("/image", response_model=UploadOut)
async def upload_image(
    file: UploadFile = File(None),
    admin: CurrentUser = Depends(get_admin_user),
    catalog: CatalogManager = Depends(get_catalog),
):
    uploads = await read_uploads([file] if file else [])
    if not uploads:
        raise ValidationError("No file uploaded", {"file": "Image file is required"})
    stored = await catalog.upload_image(uploads[0])
    return UploadOut(url=stored.url, public_id=stored.public_id)
