# storefront/core/errors.py
from typing import Dict, Optional


class StoreError(Exception):
    """Base for every failure the API reports to callers."""

    status_code: int = 500
    default_message: str = "Internal server error"
    retryable: bool = False

    def __init__(self, message: Optional[str] = None, errors: Optional[Dict[str, str]] = None):
        self.message = message or self.default_message
        self.errors = errors or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(StoreError):
    status_code = 400
    default_message = "Validation failed"


class Unauthenticated(StoreError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(StoreError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(StoreError):
    status_code = 404
    default_message = "Not found"


class RateLimited(StoreError):
    status_code = 429
    default_message = "Too many requests, please try again later"
    retryable = True


class InternalError(StoreError):
    status_code = 500


class UpstreamFailure(StoreError):
    status_code = 502
    default_message = "Upstream service unavailable"
    retryable = True


class UpstreamTimeout(UpstreamFailure):
    status_code = 504
    default_message = "Upstream service timed out"
