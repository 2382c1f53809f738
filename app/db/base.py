from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from app.services.query_builder import ListQuery

# secondary indexes of the materialized collection, identity is indexed separately
MATERIALIZED_INDEX_FIELDS = (
    "created_at_dt",
    "email_norm",
    "user.user_id",
    "movie_id",
    "cinema_id",
    "showtime_id",
    "status",
    "payment_method",
    "source",
)


class DuplicateKeyError(Exception):
    def __init__(self, key: Optional[Dict[str, Any]] = None):
        self.key = key or {}
        super().__init__(f"duplicate key: {self.key}")


@dataclass
class UpdateResult:
    """
    Outcome of an update-and-fetch. ``matched`` is authoritative: some
    drivers report a matched update without returning the document.
    """
    matched: bool
    document: Optional[Dict[str, Any]] = None


class BookingStore(ABC):
    """Document store holding the primary and the materialized booking collections."""

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def ping(self) -> None:
        ...

    @abstractmethod
    async def has_materialized(self) -> bool:
        """Whether the materialized collection exists."""

    @abstractmethod
    async def insert(self, doc: Dict[str, Any]) -> None:
        """Insert a new booking, raising DuplicateKeyError when the id exists."""

    @abstractmethod
    async def find_by_id(self, booking_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def update_and_fetch(self, booking_id: str, fields: Dict[str, Any]) -> UpdateResult:
        """Atomically set ``fields`` on one booking and return its post-update state."""

    @abstractmethod
    async def delete(self, booking_id: str) -> bool:
        ...

    @abstractmethod
    async def delete_materialized(self, booking_id: str) -> bool:
        ...

    @abstractmethod
    async def list_live(self, query: ListQuery) -> List[Dict[str, Any]]:
        """Derive fields on the primary collection, then filter, sort, skip and limit."""

    @abstractmethod
    async def list_materialized(self, query: ListQuery) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def refresh_one(self, booking_id: str) -> None:
        """Recompute one materialized entry from the primary collection (upsert)."""

    @abstractmethod
    async def refresh_all(self, rebuild: bool = False) -> None:
        """Recompute the whole materialized collection and its indexes."""
