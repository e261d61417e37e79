from fastapi import APIRouter, Depends

from storefront.api.deps import auth_rate_limit, get_auth_service, get_current_user
from storefront.models.schemas import AuthResponse, CurrentUser, LoginRequest, RegisterRequest
from storefront.services.auth_service import AuthService

router = APIRouter()


@router.post("/register", response_model=AuthResponse, dependencies=[Depends(auth_rate_limit)])
def register(payload: RegisterRequest, auth: AuthService = Depends(get_auth_service)):
    return auth.register(payload)


@router.post("/login", response_model=AuthResponse, dependencies=[Depends(auth_rate_limit)])
def login(payload: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    return auth.login(payload)


@router.get("/me")
def me(user: CurrentUser = Depends(get_current_user)):
    return {"user": user}
