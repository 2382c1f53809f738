import logging
from dataclasses import dataclass

from fastapi import Request

from app.core.config import Settings
from app.db.base import BookingStore
from app.db.memory import InMemoryBookingStore
from app.db.mongo import MongoBookingStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingContext:
    """
    Startup state shared by every request: the store and whether the
    materialized collection existed when the app started. The flag is not
    re-checked; a restart picks up a newly created materialized collection.
    """
    store: BookingStore
    materialized: bool = False


def build_store(settings: Settings) -> BookingStore:
    backend = settings.STORE_BACKEND.lower()
    if backend == "mongo":
        return MongoBookingStore(settings)
    if backend == "memory":
        return InMemoryBookingStore(
            materialized=settings.MEMORY_MATERIALIZED,
            collation_strength=settings.COLLATION_STRENGTH)
    raise ValueError(f"Unknown STORE_BACKEND {settings.STORE_BACKEND!r}")


async def init_booking_context(store: BookingStore) -> BookingContext:
    await store.connect()
    materialized = await store.has_materialized()
    logger.info("Booking store %s ready, materialized reads %s",
                type(store).__name__, "enabled" if materialized else "disabled")
    return BookingContext(store=store, materialized=materialized)


def get_booking_context(request: Request) -> BookingContext:
    """FastAPI dependency returning the context built in the app lifespan."""
    return request.app.state.booking_context
