import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pymongo import MongoClient
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.api import auth, orders, products, upload
from storefront.core.config import Settings
from storefront.core.errors import InternalError, StoreError
from storefront.core.logging import configure_logging
from storefront.core.ratelimit import RateLimiter
from storefront.db import mongo
from storefront.services.common import schema_errors
from storefront.services.media import LocalMediaStore, MediaStore, build_media_store

logger = logging.getLogger("storefront")


def create_app(settings: Optional[Settings] = None, mongo_client: Optional[MongoClient] = None,
               media: Optional[MediaStore] = None) -> FastAPI:
    """Build the API. Clients passed in are used as-is and left open on shutdown."""
    settings = settings or Settings.from_env()
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_mongo = mongo_client is None
        client = mongo_client or mongo.connect(settings)
        http_client = httpx.AsyncClient(timeout=settings.UPSTREAM_TIMEOUT_SECONDS)

        app.state.db = mongo.get_database(client, settings)
        app.state.media = media or build_media_store(settings, http_client)
        try:
            mongo.ensure_indexes(app.state.db)
        except PyMongoError as e:
            # keep serving; requests will report the outage themselves
            logger.error(f"Could not create indexes: {e}")
        logger.info(f"{settings.APP_NAME} started ({type(app.state.media).__name__})")
        try:
            yield
        finally:
            await http_client.aclose()
            if owns_mongo:
                client.close()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.settings = settings
    app.state.rate_limiter = RateLimiter(settings.AUTH_RATE_LIMIT, settings.AUTH_RATE_WINDOW_SECONDS)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials="*" not in settings.ALLOWED_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Error handlers ---

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"message": "Validation failed", "errors": schema_errors(exc)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)},
                            headers=getattr(exc, "headers", None))

    @app.exception_handler(PyMongoError)
    async def database_error_handler(request: Request, exc: PyMongoError):
        error = mongo.classify_db_error(exc)
        logger.error(f"{request.method} {request.url.path} database error: {exc}")
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    # --- Routers ---

    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(products.router, prefix="/api/products", tags=["products"])
    app.include_router(orders.router, prefix="/api/orders", tags=["orders"])
    app.include_router(upload.router, prefix="/api/upload", tags=["upload"])

    local_store = media if isinstance(media, LocalMediaStore) else None
    if local_store or (media is None and settings.MEDIA_BACKEND != "cloudinary"):
        upload_dir = local_store.upload_dir if local_store else settings.UPLOAD_DIR
        os.makedirs(upload_dir, exist_ok=True)
        app.mount(settings.UPLOAD_URL_PREFIX, StaticFiles(directory=upload_dir), name="uploads")

    @app.get("/")
    def root():
        return {"status": "ok", "app": settings.APP_NAME}

    return app


def run():
    import uvicorn

    uvicorn.run("storefront.main:create_app", factory=True,
                host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "4000")))


if __name__ == "__main__":
    run()
