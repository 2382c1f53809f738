import copy
import math
from typing import Any, Dict, Mapping, Optional

from app.core.exceptions import ValidationError
from app.models.booking import assert_valid_status, pick_creatable, pick_mutable
from app.services.derive import format_iso, to_datetime, utc_now_iso

STRING_ID_FIELDS = ("showtime_id", "movie_id", "cinema_id", "sala_id")
NUMERIC_FIELDS = ("sala_number", "price_total")
USER_STRING_FIELDS = ("user_id", "email", "name")


def to_number(field: str, value: Any):
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be numeric", fields=[field])
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise ValidationError(f"{field} must be numeric", fields=[field])
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            raise ValidationError(f"{field} must be numeric", fields=[field])
        if not math.isfinite(number):
            raise ValidationError(f"{field} must be numeric", fields=[field])
        return number
    raise ValidationError(f"{field} must be numeric", fields=[field])


def normalize_timestamp(value: Any) -> str:
    parsed = to_datetime(value)
    if parsed is None:
        # unparseable input is kept verbatim, its derived timestamp will be null
        return str(value)
    try:
        return format_iso(parsed)
    except OverflowError:
        return str(value)


def _normalize_user(user: Any) -> Any:
    if not isinstance(user, Mapping):
        return user
    out = dict(user)
    for key in USER_STRING_FIELDS:
        if out.get(key) is not None:
            out[key] = str(out[key])
    return out


def _normalize_shared(doc: Dict[str, Any]) -> Dict[str, Any]:
    for field in NUMERIC_FIELDS:
        if doc.get(field) is not None:
            doc[field] = to_number(field, doc[field])

    if "user" in doc:
        doc["user"] = _normalize_user(doc["user"])

    seats = doc.get("seats")
    if seats and not isinstance(seats, list):
        doc["seats"] = [seats]

    assert_valid_status(doc)
    return doc


def _resolve_identity(doc: Dict[str, Any]) -> Optional[Any]:
    alias = doc.pop("_id", None)
    identity = doc.get("id")
    if identity is None:
        identity = alias
    return identity


def normalize_on_create(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Shape a create payload into the stored booking.
    Keys outside the creatable whitelist are dropped.
    """
    doc = copy.deepcopy(pick_creatable(payload))

    identity = _resolve_identity(doc)
    if identity is None or str(identity).strip() == "":
        raise ValidationError("id is required", fields=["id"])
    doc["id"] = str(identity)

    for field in STRING_ID_FIELDS:
        if doc.get(field) is not None:
            doc[field] = str(doc[field])

    created_at = doc.get("created_at")
    doc["created_at"] = utc_now_iso() if created_at is None or created_at == "" else normalize_timestamp(created_at)

    return _normalize_shared(doc)


def normalize_for_patch(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Coerce the mutable keys of an update payload. Other keys are dropped."""
    return _normalize_shared(copy.deepcopy(pick_mutable(payload)))
