"""
Derived booking fields.

Both read paths expose the same computed values: the live pipeline adds
``created_at_dt`` and ``email_norm`` before filtering, the materialized
collection stores those plus ``created_at_pe`` and ``seat_count``. The
MongoDB store builds the equivalent aggregation expressions in
``app.db.mongo``; keep both in step.
"""
import math
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
from zoneinfo import ZoneInfo

LIMA_TZ_NAME = "America/Lima"
LIMA_TZ = ZoneInfo(LIMA_TZ_NAME)

# strftime/$dateToString format shared by both stores, %L/%f handled below
LOCAL_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Accepts a native datetime, epoch milliseconds or an ISO-8601 string.
    Anything else, or an unparseable string, gives None.
    Naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text[-1] in ("Z", "z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def format_iso(value: datetime) -> str:
    """UTC ISO-8601 with millisecond precision, e.g. 2024-05-01T10:00:00.000Z"""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    return format_iso(datetime.now(timezone.utc))


def format_lima(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    try:
        local = value.astimezone(LIMA_TZ)
    except OverflowError:
        # instants at the edge of the datetime range have no Lima wall time
        return None
    return f"{local.strftime(LOCAL_TIMESTAMP_FORMAT)}.{local.microsecond // 1000:03d}{local.strftime('%z')}"


def normalize_email(user: Any) -> str:
    # mirrors $toLower: missing/null becomes an empty string
    if not isinstance(user, Mapping):
        return ""
    email = user.get("email")
    if email is None:
        return ""
    return str(email).lower()


def count_seats(seats: Any) -> int:
    return len(seats) if isinstance(seats, list) else 0


def derive_live_fields(doc: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "created_at_dt": to_datetime(doc.get("created_at")),
        "email_norm": normalize_email(doc.get("user")),
    }


def derive_materialized_fields(doc: Mapping[str, Any]) -> Dict[str, Any]:
    fields = derive_live_fields(doc)
    fields["created_at_pe"] = format_lima(fields["created_at_dt"])
    fields["seat_count"] = count_seats(doc.get("seats"))
    return fields
