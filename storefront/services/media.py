# storefront/services/media.py
import hashlib
import logging
import os
import re
import time
import uuid
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlparse

import httpx
from slugify import slugify

from storefront.core.config import Settings
from storefront.core.errors import UpstreamFailure, UpstreamTimeout
from storefront.models.schemas import ProductImage

logger = logging.getLogger("storefront.media")

CLOUDINARY_API = "https://api.cloudinary.com/v1_1"
VERSION_SEGMENT = re.compile(r"^v\d+$")


@dataclass
class ImageUpload:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class MediaStore:
    """Object storage for product images."""

    async def upload(self, image: ImageUpload) -> ProductImage:
        raise NotImplementedError

    async def delete(self, image: ProductImage) -> bool:
        """Remove the backing asset. Returns False when the image is not one we host."""
        raise NotImplementedError


def _safe_name(filename: str) -> str:
    stem, ext = os.path.splitext(os.path.basename(filename or "image"))
    ext = ext.lower() if re.fullmatch(r"\.[A-Za-z0-9]{1,5}", ext or "") else ""
    return f"{uuid.uuid4().hex}_{slugify(stem) or 'image'}{ext}"


# --- Local disk ---

class LocalMediaStore(MediaStore):
    def __init__(self, upload_dir: str, url_prefix: str = "/uploads"):
        self.upload_dir = upload_dir
        self.url_prefix = url_prefix.rstrip("/")
        os.makedirs(self.upload_dir, exist_ok=True)

    def _name_from(self, image: ProductImage) -> Optional[str]:
        if image.public_id:
            return os.path.basename(image.public_id)
        path = urlparse(image.url).path
        if path.startswith(self.url_prefix + "/"):
            return os.path.basename(path)
        return None

    async def upload(self, image: ImageUpload) -> ProductImage:
        filename = _safe_name(image.filename)
        file_path = os.path.join(self.upload_dir, filename)
        try:
            with open(file_path, "wb") as buffer:
                buffer.write(image.data)
        except OSError as exc:
            logger.error(f"Could not write upload {file_path}: {exc}")
            raise UpstreamFailure("Image upload failed")
        return ProductImage(url=f"{self.url_prefix}/{filename}", public_id=filename)

    async def delete(self, image: ProductImage) -> bool:
        name = self._name_from(image)
        if not name:
            return False
        try:
            os.remove(os.path.join(self.upload_dir, name))
        except FileNotFoundError:
            logger.info(f"Upload {name} already gone")
        except OSError as exc:
            raise UpstreamFailure(f"Could not delete {name}: {exc}")
        return True


# --- Cloudinary ---

def cloudinary_signature(params: Dict[str, str], api_secret: str) -> str:
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in (None, ""))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


def public_id_from_url(url: str, cloud_name: str) -> Optional[str]:
    """Best-effort public id from a delivery URL such as
    https://res.cloudinary.com/<cloud>/image/upload/v1712/the_present/abc.jpg
    """
    parsed = urlparse(url or "")
    if not parsed.netloc.endswith("cloudinary.com"):
        return None
    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) < 4 or parts[0] != cloud_name or "upload" not in parts:
        return None
    rest = parts[parts.index("upload") + 1:]
    versions = [i for i, seg in enumerate(rest) if VERSION_SEGMENT.match(seg)]
    if versions:
        rest = rest[versions[0] + 1:]
    if not rest:
        return None
    return os.path.splitext("/".join(rest))[0]


class CloudinaryMediaStore(MediaStore):
    def __init__(self, client: httpx.AsyncClient, cloud_name: str, api_key: str, api_secret: str,
                 folder: str = ""):
        self.client = client
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder

    def _signed(self, params: Dict[str, str]) -> Dict[str, str]:
        params = {k: v for k, v in params.items() if v}
        params["timestamp"] = str(int(time.time()))
        params["signature"] = cloudinary_signature(params, self.api_secret)
        params["api_key"] = self.api_key
        return params

    async def _post(self, action: str, data: Dict[str, str], files=None) -> dict:
        url = f"{CLOUDINARY_API}/{self.cloud_name}/image/{action}"
        try:
            res = await self.client.post(url, data=data, files=files)
            res.raise_for_status()
            body = res.json()
        except httpx.TimeoutException:
            logger.error(f"Cloudinary {action} timed out")
            raise UpstreamTimeout("Media store timed out")
        except httpx.HTTPError as exc:
            logger.error(f"Cloudinary {action} failed: {exc}")
            raise UpstreamFailure("Media store request failed")
        except ValueError:
            raise UpstreamFailure("Media store returned an invalid response")
        if not isinstance(body, dict):
            raise UpstreamFailure("Media store returned an invalid response")
        return body

    async def upload(self, image: ImageUpload) -> ProductImage:
        data = self._signed({"folder": self.folder})
        files = {"file": (image.filename or "image", image.data, image.content_type)}
        body = await self._post("upload", data, files=files)
        url = body.get("secure_url") or body.get("url")
        if not url:
            raise UpstreamFailure("Media store returned no URL")
        return ProductImage(url=url, public_id=body.get("public_id"))

    async def delete(self, image: ProductImage) -> bool:
        public_id = image.public_id or public_id_from_url(image.url, self.cloud_name)
        if not public_id:
            return False
        body = await self._post("destroy", self._signed({"public_id": public_id}))
        result = body.get("result")
        if result == "not found":
            logger.info(f"Cloudinary asset {public_id} already gone")
        elif result != "ok":
            raise UpstreamFailure(f"Could not delete {public_id}: {result}")
        return True


def build_media_store(settings: Settings, client: httpx.AsyncClient) -> MediaStore:
    if settings.MEDIA_BACKEND == "cloudinary":
        if not settings.cloudinary_configured:
            raise RuntimeError("Cloudinary credentials not configured. See .env")
        return CloudinaryMediaStore(
            client,
            settings.CLOUDINARY_CLOUD_NAME,
            settings.CLOUDINARY_API_KEY,
            settings.CLOUDINARY_API_SECRET,
            folder=settings.CLOUDINARY_FOLDER,
        )
    return LocalMediaStore(settings.UPLOAD_DIR, settings.UPLOAD_URL_PREFIX)
