from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Generic, Iterable, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from storefront.core.errors import ValidationError
from storefront.models.schemas import to_money

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


# --- Best-effort side operations ---

@dataclass
class SideFailure:
    operation: str
    target: str
    error: str

    def describe(self) -> str:
        return f"{self.operation} failed for {self.target}: {self.error}"


@dataclass
class OperationResult(Generic[T]):
    """Primary outcome plus any non-fatal failures hit along the way."""

    value: T
    side_failures: List[SideFailure] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.side_failures)

    def warnings(self) -> List[str]:
        return [f.describe() for f in self.side_failures]


# --- Input parsing ---

def schema_errors(exc: SchemaError) -> dict:
    """Flatten pydantic errors into {"dotted.path": "message"}."""
    errors = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        key = ".".join(loc) or "body"
        if err.get("type") == "missing":
            message = f"{loc[-1].replace('_', ' ').capitalize() if loc else 'Value'} is required"
        else:
            message = err.get("msg", "Invalid value")
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
        errors.setdefault(key, message)
    return errors


def parse_input(model: Type[M], data, message: str = "Validation failed") -> M:
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except SchemaError as exc:
        raise ValidationError(message, schema_errors(exc))


# --- Money ---

def line_total(price, quantity: int) -> Decimal:
    return to_money(price) * quantity


def order_total(lines: Iterable[Tuple[float, int]]) -> float:
    total = sum((line_total(price, qty) for price, qty in lines), Decimal("0"))
    return float(to_money(total))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def first_or_default(values: List[T], default: Optional[T] = None) -> Optional[T]:
    return values[0] if values else default
