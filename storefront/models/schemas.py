from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, ValidationInfo, field_validator

CENT = Decimal("0.01")
MAX_QUANTITY = 10_000


def to_money(value) -> Decimal:
    """Decimal rounded half-up to cents; floats go through str() to avoid binary noise."""
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise ValueError("Must be a number")
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError("Must be a number")


# --- Users ---

class RegisterRequest(BaseModel):
    name: str = Field(..., max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Literal["customer", "vendor", "admin"] = "customer"

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class CurrentUser(BaseModel):
    id: str
    name: str
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class AuthResponse(BaseModel):
    token: str
    user: CurrentUser


class UserSummary(BaseModel):
    id: str
    name: str
    email: str


# --- Products ---

class ProductImage(BaseModel):
    url: str
    public_id: Optional[str] = None


TEXT_LABELS = {"name": "Product name", "description": "Description", "category": "Category"}


class ProductFields(BaseModel):
    @field_validator("name", "description", "category", check_fields=False)
    @classmethod
    def text_not_blank(cls, v, info: ValidationInfo):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError(f"{TEXT_LABELS[info.field_name]} is required")
        return v

    @field_validator("price", check_fields=False)
    @classmethod
    def positive_price(cls, v):
        if v is None:
            return v
        try:
            price = to_money(v)
        except ValueError:
            raise ValueError("Valid price is required")
        if price <= 0:
            raise ValueError("Valid price is required")
        return float(price)


class ProductCreate(ProductFields):
    name: str = Field(..., max_length=200)
    description: str
    price: float
    category: str = Field(..., max_length=100)


class ProductUpdate(ProductFields):
    name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    price: Optional[float] = None
    category: Optional[str] = Field(None, max_length=100)

    def changes(self) -> dict:
        return self.model_dump(exclude_none=True)


class ProductOut(BaseModel):
    id: str
    name: str
    description: str
    price: float
    category: str
    images: List[ProductImage] = []
    image_url: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductSummary(BaseModel):
    id: str
    name: str
    price: float
    image_url: str = ""


class UploadOut(BaseModel):
    url: str
    public_id: Optional[str] = None


# --- Orders ---

class OrderItemIn(BaseModel):
    product: str = Field(..., min_length=1)
    quantity: int

    @field_validator("quantity", mode="before")
    @classmethod
    def no_booleans(cls, v):
        if isinstance(v, bool):
            raise ValueError("Quantity must be a positive integer")
        return v

    @field_validator("quantity")
    @classmethod
    def positive_quantity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be a positive integer")
        if v > MAX_QUANTITY:
            raise ValueError(f"Quantity must be at most {MAX_QUANTITY}")
        return v


class OrderCreate(BaseModel):
    items: List[OrderItemIn]


class OrderStatusUpdate(BaseModel):
    status: str


class OrderItemOut(BaseModel):
    product_id: str
    product: Optional[ProductSummary] = None
    name: str = ""
    quantity: int
    price: float


class OrderOut(BaseModel):
    id: str
    user_id: str
    user: Optional[UserSummary] = None
    items: List[OrderItemOut]
    total: float
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MessageOut(BaseModel):
    message: str
    warnings: List[str] = []
