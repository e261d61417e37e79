from typing import List, Optional

from fastapi import Depends, Request, UploadFile
from fastapi.security import OAuth2PasswordBearer

from storefront.core.errors import Unauthenticated
from storefront.services.auth_service import AuthService
from storefront.services.catalog_service import CatalogManager
from storefront.services.media import ImageUpload
from storefront.services.orders_service import OrderManager, require_role

oauth2 = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# --- Services bound to the application's state ---

def get_auth_service(request: Request) -> AuthService:
    return AuthService(request.app.state.db, request.app.state.settings)


def get_catalog(request: Request) -> CatalogManager:
    state = request.app.state
    return CatalogManager(state.db, state.media, state.settings)


def get_orders(request: Request) -> OrderManager:
    return OrderManager(request.app.state.db)


# --- Auth gate ---

class AuthGate:
    """Resolve the bearer token to the calling user.

    ``allow_guest`` turns every authentication failure into an anonymous caller
    (``None``); ``role`` additionally requires the resolved user to hold that role.
    """

    def __init__(self, allow_guest: bool = False, role: Optional[str] = None):
        self.allow_guest = allow_guest
        self.role = role

    def __call__(self, token: Optional[str] = Depends(oauth2),
                 auth: AuthService = Depends(get_auth_service)):
        try:
            user = auth.resolve_token(token)
        except Unauthenticated:
            if self.allow_guest:
                return None
            raise
        if self.role:
            require_role(user, self.role, "Admin role required" if self.role == "admin" else "Forbidden")
        return user


get_current_user = AuthGate()
get_optional_user = AuthGate(allow_guest=True)
get_admin_user = AuthGate(role="admin")


# --- Rate limiting ---

def auth_rate_limit(request: Request):
    host = request.client.host if request.client else "unknown"
    request.app.state.rate_limiter.hit(f"auth:{host}")


# --- Uploads ---

async def read_uploads(files: Optional[List[UploadFile]]) -> List[ImageUpload]:
    uploads = []
    for f in files or []:
        # browsers send an empty part when no file was picked
        if not f.filename:
            continue
        uploads.append(ImageUpload(
            filename=f.filename,
            content_type=f.content_type or "application/octet-stream",
            data=await f.read(),
        ))
    return uploads
