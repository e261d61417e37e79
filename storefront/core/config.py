# storefront/core/config.py
import os
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _csv(value: Optional[str], default: List[str]) -> List[str]:
    if not value:
        return default
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings:
    APP_NAME: str = "The Present Storefront"

    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB: str = "storefront"
    MONGO_TIMEOUT_MS: int = 5000

    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7  # 7 days

    MEDIA_BACKEND: str = "local"
    UPLOAD_DIR: str = "public/uploads"
    UPLOAD_URL_PREFIX: str = "/uploads"
    CLOUDINARY_CLOUD_NAME: str = ""
    CLOUDINARY_API_KEY: str = ""
    CLOUDINARY_API_SECRET: str = ""
    CLOUDINARY_FOLDER: str = "the_present"

    UPSTREAM_TIMEOUT_SECONDS: float = 15.0
    MAX_PRODUCT_IMAGES: int = 5
    MAX_IMAGE_BYTES: int = 5 * 1024 * 1024

    ALLOWED_ORIGINS: List[str] = ["*"]
    AUTH_RATE_LIMIT: int = 20
    AUTH_RATE_WINDOW_SECONDS: int = 15 * 60
    LOG_LEVEL: str = "INFO"

    SEED_ADMIN_EMAIL: str = "admin@thepresent.store"
    SEED_ADMIN_PASSWORD: str = "adminpass"

    def __init__(self, **overrides):
        for key, value in overrides.items():
            if not hasattr(type(self), key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)
        self.ALLOWED_ORIGINS = list(self.ALLOWED_ORIGINS)

    @classmethod
    def from_env(cls) -> "Settings":
        jwt_secret = os.getenv("JWT_SECRET")
        if not jwt_secret:
            # refuse to boot with a guessable signing key
            raise RuntimeError("Environment variable JWT_SECRET is required")

        return cls(
            APP_NAME=os.getenv("APP_NAME", cls.APP_NAME),
            MONGODB_URI=os.getenv("MONGODB_URI", cls.MONGODB_URI),
            MONGODB_DB=os.getenv("MONGODB_DB", cls.MONGODB_DB),
            MONGO_TIMEOUT_MS=int(os.getenv("MONGO_TIMEOUT_MS", cls.MONGO_TIMEOUT_MS)),
            JWT_SECRET=jwt_secret,
            JWT_ALGORITHM=os.getenv("JWT_ALGORITHM", cls.JWT_ALGORITHM),
            ACCESS_TOKEN_EXPIRE_MINUTES=int(
                os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", cls.ACCESS_TOKEN_EXPIRE_MINUTES)
            ),
            MEDIA_BACKEND=os.getenv("MEDIA_BACKEND", cls.MEDIA_BACKEND).lower(),
            UPLOAD_DIR=os.getenv("UPLOAD_DIR", cls.UPLOAD_DIR),
            UPLOAD_URL_PREFIX=os.getenv("UPLOAD_URL_PREFIX", cls.UPLOAD_URL_PREFIX),
            CLOUDINARY_CLOUD_NAME=os.getenv("CLOUDINARY_CLOUD_NAME", ""),
            CLOUDINARY_API_KEY=os.getenv("CLOUDINARY_API_KEY", ""),
            CLOUDINARY_API_SECRET=os.getenv("CLOUDINARY_API_SECRET", ""),
            CLOUDINARY_FOLDER=os.getenv("CLOUDINARY_FOLDER", cls.CLOUDINARY_FOLDER),
            UPSTREAM_TIMEOUT_SECONDS=float(
                os.getenv("UPSTREAM_TIMEOUT_SECONDS", cls.UPSTREAM_TIMEOUT_SECONDS)
            ),
            MAX_PRODUCT_IMAGES=int(os.getenv("MAX_PRODUCT_IMAGES", cls.MAX_PRODUCT_IMAGES)),
            MAX_IMAGE_BYTES=int(os.getenv("MAX_IMAGE_BYTES", cls.MAX_IMAGE_BYTES)),
            ALLOWED_ORIGINS=_csv(
                os.getenv("ALLOWED_ORIGINS") or os.getenv("FRONTEND_URL"), ["*"]
            ),
            AUTH_RATE_LIMIT=int(os.getenv("AUTH_RATE_LIMIT", cls.AUTH_RATE_LIMIT)),
            AUTH_RATE_WINDOW_SECONDS=int(
                os.getenv("AUTH_RATE_WINDOW_SECONDS", cls.AUTH_RATE_WINDOW_SECONDS)
            ),
            LOG_LEVEL=os.getenv("LOG_LEVEL", cls.LOG_LEVEL).upper(),
            SEED_ADMIN_EMAIL=os.getenv("SEED_ADMIN_EMAIL", cls.SEED_ADMIN_EMAIL),
            SEED_ADMIN_PASSWORD=os.getenv("SEED_ADMIN_PASSWORD", cls.SEED_ADMIN_PASSWORD),
        )

    @property
    def cloudinary_configured(self) -> bool:
        return bool(
            self.CLOUDINARY_CLOUD_NAME and self.CLOUDINARY_API_KEY and self.CLOUDINARY_API_SECRET
        )
