"""
Translate flat list query parameters into a filter document, a sort key and a
page window.

Every parser here is total: bad input falls back to a documented default
instead of raising, since values arrive as strings from the query string.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from app.services.derive import to_datetime

DEFAULT_LIMIT = 50
MAX_LIMIT = 200
DEFAULT_PAGE = 1
DEFAULT_SORT = "-created_at_dt"

BLANK_STRINGS = ("", "null", "undefined")
TRUTHY_STRINGS = ("1", "true", "yes", "on")

IDENTITY_PARAMS = ("id", "_id", "booking_id")

# query param -> document field, exact match
EXACT_MATCH_PARAMS = {
    "movie_id": "movie_id",
    "cinema_id": "cinema_id",
    "showtime_id": "showtime_id",
    "user_id": "user.user_id",
    "status": "status",
    "source": "source",
    "payment_method": "payment_method",
}

ASCENDING = 1
DESCENDING = -1


@dataclass(frozen=True)
class ListQuery:
    filter: Dict[str, Any] = field(default_factory=dict)
    sort: Tuple[str, int] = ("created_at_dt", DESCENDING)
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    flat: bool = False

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def is_blank(value: Any) -> bool:
    """None, empty, "null" and "undefined" (any case) count as absent."""
    if value is None:
        return True
    return str(value).strip().lower() in BLANK_STRINGS


def first_present(params: Mapping[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = params.get(key)
        if not is_blank(value):
            return str(value)
    return None


def _parse_int(value: Any) -> Optional[int]:
    if is_blank(value) or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def parse_limit(value: Any) -> int:
    """Default 50, capped at 200. Non-numeric or non-positive input gives the default."""
    limit = _parse_int(value)
    if limit is None or limit < 1:
        return DEFAULT_LIMIT
    return min(limit, MAX_LIMIT)


def parse_page(value: Any) -> int:
    page = _parse_int(value)
    if page is None:
        return DEFAULT_PAGE
    return max(page, 1)


def parse_flag(value: Any) -> bool:
    if is_blank(value):
        return False
    return str(value).strip().lower() in TRUTHY_STRINGS


def parse_date(value: Any) -> Optional[datetime]:
    if is_blank(value):
        return None
    return to_datetime(str(value))


def build_filter(params: Mapping[str, Any]) -> Dict[str, Any]:
    query_filter: Dict[str, Any] = {}

    identity = first_present(params, *IDENTITY_PARAMS)
    if identity is not None:
        query_filter["id"] = identity

    for param, doc_field in EXACT_MATCH_PARAMS.items():
        value = first_present(params, param)
        if value is not None:
            query_filter[doc_field] = value

    email = first_present(params, "email")
    if email is not None:
        query_filter["$or"] = [
            {"email_norm": email.lower()},
            {"user.email": email},
        ]

    date_from = parse_date(params.get("date_from"))
    date_to = parse_date(params.get("date_to"))
    if date_from or date_to:
        created_range = {}
        if date_from:
            created_range["$gte"] = date_from
        if date_to:
            created_range["$lt"] = date_to
        query_filter["created_at_dt"] = created_range

    return query_filter


def build_sort(value: Any) -> Tuple[str, int]:
    key = DEFAULT_SORT if is_blank(value) else str(value).strip()
    if key.startswith("-"):
        key, direction = key[1:], DESCENDING
    else:
        direction = ASCENDING
    if not key:
        return DEFAULT_SORT[1:], DESCENDING
    return key, direction


def build_list_query(params: Mapping[str, Any]) -> ListQuery:
    return ListQuery(
        filter=build_filter(params),
        sort=build_sort(params.get("sort")),
        page=parse_page(params.get("page")),
        limit=parse_limit(params.get("limit")),
        flat=parse_flag(params.get("flat")),
    )
