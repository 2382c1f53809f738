from enum import Enum
from typing import Any, Dict, List, Mapping

from app.core.exceptions import ValidationError


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    CARD = "card"
    CASH = "cash"
    YAPE = "yape"
    PLIN = "plin"
    STRIPE = "stripe"


class BookingSource(str, Enum):
    WEB = "web"
    MOBILE = "mobile"
    KIOSK = "kiosk"
    PARTNER = "partner"


class FieldClass(str, Enum):
    MUTABLE = "mutable"
    IMMUTABLE = "immutable"
    DERIVED = "derived"
    UNKNOWN = "unknown"


ALLOWED_STATUS = frozenset(status.value for status in BookingStatus)

# `_id` is accepted as an alias of `id` on create
IDENTITY_FIELDS = ("id", "_id")

MUTABLE_FIELDS = frozenset({
    "seats", "user", "payment_method", "source", "status", "price_total", "currency",
})

IMMUTABLE_FIELDS = frozenset({
    "id", "_id", "showtime_id", "movie_id", "cinema_id", "sala_id", "sala_number", "created_at",
})

CREATABLE_FIELDS = MUTABLE_FIELDS | IMMUTABLE_FIELDS

# computed by the read paths, never accepted as input
DERIVED_FIELDS = frozenset({"created_at_dt", "created_at_pe", "email_norm", "seat_count"})


def classify_field(key: str) -> FieldClass:
    if key in MUTABLE_FIELDS:
        return FieldClass.MUTABLE
    if key in IMMUTABLE_FIELDS:
        return FieldClass.IMMUTABLE
    if key in DERIVED_FIELDS:
        return FieldClass.DERIVED
    return FieldClass.UNKNOWN


def classify_fields(payload: Mapping[str, Any]) -> Dict[FieldClass, List[str]]:
    """Group the keys of a write payload by field class."""
    groups: Dict[FieldClass, List[str]] = {field_class: [] for field_class in FieldClass}
    for key in payload:
        groups[classify_field(key)].append(key)
    return groups


def ensure_no_immutable(payload: Mapping[str, Any]) -> None:
    invalid = [key for key in payload if key in IMMUTABLE_FIELDS]
    if invalid:
        raise ValidationError(
            f"Cannot modify immutable fields: {', '.join(invalid)}", fields=invalid)


def pick_creatable(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if key in CREATABLE_FIELDS}


def pick_mutable(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if key in MUTABLE_FIELDS}


def assert_valid_status(doc: Mapping[str, Any]) -> None:
    if "status" not in doc:
        return
    status = doc["status"]
    if not isinstance(status, str) or status not in ALLOWED_STATUS:
        raise ValidationError(
            f"Invalid status. Allowed: {', '.join(status.value for status in BookingStatus)}",
            fields=["status"])
