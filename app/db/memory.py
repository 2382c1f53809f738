"""
Process-local booking store.

Evaluates the same filter documents the MongoDB store sends to the server
(equality, ``$or``, ``$gte``/``$lt`` ranges and dotted paths) and applies
the configured collation strength to string comparisons. Used for tests and
for running the API without a database.
"""
import copy
import unicodedata
from datetime import datetime
from numbers import Number
from typing import Any, Dict, List, Mapping, Optional

from app.db.base import MATERIALIZED_INDEX_FIELDS, BookingStore, DuplicateKeyError, UpdateResult
from app.services.derive import derive_live_fields, derive_materialized_fields
from app.services.query_builder import ListQuery

MISSING = object()


def collation_key(value: str, strength: int = 1) -> str:
    """strength 1 ignores case and accents, 2 ignores case only, 3 compares exactly."""
    if strength >= 3:
        return value
    if strength == 1:
        decomposed = unicodedata.normalize("NFKD", value)
        value = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return value.casefold()


def get_path(doc: Mapping[str, Any], path: str) -> Any:
    current: Any = doc
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return MISSING
        current = current[part]
    return current


def _type_rank(value: Any) -> int:
    # BSON comparison order: null < numbers < strings < objects < arrays < booleans < dates
    if value is None or value is MISSING:
        return 0
    if isinstance(value, bool):
        return 5
    if isinstance(value, Number):
        return 1
    if isinstance(value, str):
        return 2
    if isinstance(value, Mapping):
        return 3
    if isinstance(value, list):
        return 4
    if isinstance(value, datetime):
        return 6
    return 7


class InMemoryBookingStore(BookingStore):
    def __init__(self, materialized: bool = False, collation_strength: int = 1):
        self.collation_strength = collation_strength
        self.bookings: Dict[str, Dict[str, Any]] = {}
        self.materialized: Optional[Dict[str, Dict[str, Any]]] = {} if materialized else None
        self.materialized_indexes: List[str] = []

    def _sort_value(self, value: Any):
        rank = _type_rank(value)
        if rank == 2:
            return rank, collation_key(value, self.collation_strength)
        if rank in (1, 5, 6):
            return rank, value
        return rank, 0

    def _equals(self, value: Any, expected: Any) -> bool:
        if value is MISSING:
            return expected is None
        if isinstance(value, str) and isinstance(expected, str):
            return collation_key(value, self.collation_strength) == collation_key(expected, self.collation_strength)
        if isinstance(value, list) and not isinstance(expected, list):
            return any(self._equals(item, expected) for item in value)
        return value == expected

    def _compare(self, value: Any, operator: str, operand: Any) -> bool:
        left, right = self._sort_value(value), self._sort_value(operand)
        # range operators only compare values of the same type
        if value is MISSING or value is None or left[0] != right[0]:
            return False
        if operator == "$gte":
            return left >= right
        if operator == "$lt":
            return left < right
        raise ValueError(f"unsupported operator {operator}")

    def matches(self, doc: Mapping[str, Any], query_filter: Mapping[str, Any]) -> bool:
        for key, condition in query_filter.items():
            if key == "$or":
                if not any(self.matches(doc, sub) for sub in condition):
                    return False
                continue
            value = get_path(doc, key)
            if isinstance(condition, Mapping) and condition and all(op.startswith("$") for op in condition):
                if not all(self._compare(value, op, operand) for op, operand in condition.items()):
                    return False
            elif not self._equals(value, condition):
                return False
        return True

    def _window(self, docs: List[Dict[str, Any]], query: ListQuery) -> List[Dict[str, Any]]:
        matched = [doc for doc in docs if self.matches(doc, query.filter)]
        field, direction = query.sort
        matched.sort(key=lambda doc: self._sort_value(get_path(doc, field)), reverse=direction < 0)
        return [copy.deepcopy(doc) for doc in matched[query.skip:query.skip + query.limit]]

    async def ping(self) -> None:
        pass

    async def has_materialized(self) -> bool:
        return self.materialized is not None

    async def insert(self, doc: Dict[str, Any]) -> None:
        if doc["id"] in self.bookings:
            raise DuplicateKeyError({"id": doc["id"]})
        self.bookings[doc["id"]] = copy.deepcopy(doc)

    async def find_by_id(self, booking_id: str) -> Optional[Dict[str, Any]]:
        doc = self.bookings.get(booking_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def update_and_fetch(self, booking_id: str, fields: Dict[str, Any]) -> UpdateResult:
        doc = self.bookings.get(booking_id)
        if doc is None:
            return UpdateResult(matched=False)
        doc.update(copy.deepcopy(fields))
        return UpdateResult(matched=True, document=copy.deepcopy(doc))

    async def delete(self, booking_id: str) -> bool:
        return self.bookings.pop(booking_id, None) is not None

    async def delete_materialized(self, booking_id: str) -> bool:
        if self.materialized is None:
            return False
        return self.materialized.pop(booking_id, None) is not None

    async def list_live(self, query: ListQuery) -> List[Dict[str, Any]]:
        docs = [{**doc, **derive_live_fields(doc)} for doc in self.bookings.values()]
        return self._window(docs, query)

    async def list_materialized(self, query: ListQuery) -> List[Dict[str, Any]]:
        return self._window(list((self.materialized or {}).values()), query)

    def _materialize(self, doc: Dict[str, Any]) -> None:
        if self.materialized is None:
            self.materialized = {}
        self.materialized[doc["id"]] = {**copy.deepcopy(doc), **derive_materialized_fields(doc)}

    async def refresh_one(self, booking_id: str) -> None:
        doc = self.bookings.get(booking_id)
        if doc is not None:
            self._materialize(doc)

    async def refresh_all(self, rebuild: bool = False) -> None:
        if rebuild:
            self.materialized = None
        for doc in self.bookings.values():
            self._materialize(doc)
        if self.materialized is None:
            self.materialized = {}
        self.materialized_indexes = ["id", *MATERIALIZED_INDEX_FIELDS]
