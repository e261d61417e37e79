import logging
from typing import Optional

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from storefront.core import security
from storefront.core.config import Settings
from storefront.core.errors import Unauthenticated, ValidationError
from storefront.db.mongo import USERS, parse_object_id
from storefront.models.schemas import AuthResponse, CurrentUser, LoginRequest, RegisterRequest
from storefront.services.common import parse_input, utcnow

logger = logging.getLogger("storefront.auth")

ROLES = ("customer", "vendor", "admin")
SELF_SERVICE_ROLES = ("customer", "vendor")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def to_current_user(doc: dict) -> CurrentUser:
    return CurrentUser(
        id=str(doc["_id"]),
        name=doc.get("name", ""),
        email=doc.get("email", ""),
        role=doc.get("role", "customer"),
    )


class AuthService:
    def __init__(self, db: Database, settings: Settings):
        self.users = db[USERS]
        self.settings = settings

    def _issue(self, doc: dict) -> AuthResponse:
        token = security.create_token(self.settings, str(doc["_id"]))
        return AuthResponse(token=token, user=to_current_user(doc))

    def create_user(self, name: str, email: str, password: str, role: str = "customer") -> dict:
        if role not in ROLES:
            raise ValidationError(errors={"role": "Role must be customer, vendor, or admin"})
        email = normalize_email(email)
        if self.users.find_one({"email": email}):
            raise ValidationError("Email already in use", {"email": "Email already in use"})

        doc = {
            "name": name.strip(),
            "email": email,
            "password": security.hash_password(password),
            "role": role,
            "created_at": utcnow(),
        }
        try:
            doc["_id"] = self.users.insert_one(doc).inserted_id
        except DuplicateKeyError:
            # lost a race against a concurrent registration
            raise ValidationError("Email already in use", {"email": "Email already in use"})
        return doc

    def register(self, payload) -> AuthResponse:
        payload = parse_input(RegisterRequest, payload)
        logger.info(f"Registering user {payload.email} as {payload.role}")
        if payload.role not in SELF_SERVICE_ROLES:
            raise ValidationError(errors={"role": "Role must be customer or vendor"})

        try:
            doc = self.create_user(payload.name, payload.email, payload.password, payload.role)
        except ValidationError:
            logger.info(f"Registration failed: email in use ({payload.email})")
            raise
        logger.info(f"User registered: {doc['email']}")
        return self._issue(doc)

    def login(self, payload) -> AuthResponse:
        payload = parse_input(LoginRequest, payload)
        user = self.users.find_one({"email": normalize_email(payload.email)})
        if not user or not security.verify_password(payload.password, user.get("password", "")):
            logger.info(f"Login failed for {payload.email}")
            raise Unauthenticated("Invalid credentials")
        logger.info(f"User logged in: {user['email']} ({user.get('role')})")
        return self._issue(user)

    def get_user(self, user_id: str) -> CurrentUser:
        oid = parse_object_id(user_id)
        doc = self.users.find_one({"_id": oid}, {"password": 0}) if oid else None
        if not doc:
            raise Unauthenticated("Invalid user session")
        return to_current_user(doc)

    def resolve_token(self, token: Optional[str]) -> CurrentUser:
        if not token:
            raise Unauthenticated()
        return self.get_user(security.decode_token(self.settings, token))
