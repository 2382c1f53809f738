import pytest
from fastapi.testclient import TestClient
from pymongo.errors import ConnectionFailure

from app.app import create_app
from app.core.config import Settings
from app.crud.booking import crud_booking
from app.db.core import BookingContext
from app.db.memory import InMemoryBookingStore
from app.db.mongo import MongoBookingStore


def booking_payload(booking_id: str, **overrides):
    booking = {
        "id": booking_id,
        "showtime_id": "s-1",
        "movie_id": "m-1",
        "cinema_id": "c-1",
        "sala_id": "room-1",
        "sala_number": 1,
        "seats": [{"row": "A", "number": 1}],
        "user": {"user_id": "u-1", "name": "Luciana", "email": "luciana@x.com"},
        "payment_method": "card",
        "source": "web",
        "status": "CONFIRMED",
        "price_total": 20,
        "currency": "PEN",
    }
    booking.update(overrides)
    return booking


@pytest.fixture
def make_booking():
    return booking_payload


@pytest.fixture
def store():
    return InMemoryBookingStore()


@pytest.fixture
def materialized_store():
    return InMemoryBookingStore(materialized=True)


@pytest.fixture
def ctx(store):
    """Context without a materialized collection, reads go through the live pipeline."""
    return BookingContext(store=store, materialized=False)


@pytest.fixture
def materialized_ctx(materialized_store):
    return BookingContext(store=materialized_store, materialized=True)


@pytest.fixture
def sample_bookings():
    return [
        booking_payload("b-1", created_at="2024-01-10T10:00:00Z", movie_id="m-1", status="CONFIRMED",
                        user={"user_id": "u-1", "name": "Ángela", "email": "angela@x.com"}),
        booking_payload("b-2", created_at="2024-02-10T10:00:00Z", movie_id="m-2", status="PENDING",
                        user={"user_id": "u-2", "name": "bruno", "email": "Bruno@X.com"}),
        booking_payload("b-3", created_at="2024-03-10T10:00:00Z", movie_id="m-1", status="CANCELLED",
                        user={"user_id": "u-1", "name": "Carla", "email": "carla@x.com"},
                        payment_method="yape", source="mobile"),
        booking_payload("b-4", created_at="not-a-date", movie_id="m-3", status="REFUNDED",
                        user={"user_id": "u-3", "name": "diego", "email": "diego@x.com"}),
    ]


@pytest.fixture
async def seeded_ctx(ctx, sample_bookings):
    for booking in sample_bookings:
        await crud_booking.create_booking(ctx, booking)
    return ctx


@pytest.fixture
async def seeded_materialized_ctx(materialized_ctx, sample_bookings):
    for booking in sample_bookings:
        await crud_booking.create_booking(materialized_ctx, booking)
    return materialized_ctx


@pytest.fixture
def test_settings():
    return Settings(STORE_BACKEND="memory", ENV="test", LOG_LEVEL="WARNING")


@pytest.fixture
def client(test_settings, store):
    app = create_app(settings=test_settings, store=store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def materialized_client(test_settings, materialized_store):
    app = create_app(settings=test_settings, store=materialized_store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
async def mongo_store():
    """
    MongoBookingStore on a throwaway ``<DB_NAME>_test`` database, dropped
    before and after each test. Skips when no MongoDB server answers at
    MONGODB_URI.
    """
    base = Settings()
    test_settings = Settings(
        MONGODB_URI=base.MONGODB_URI,
        DB_NAME=f"{base.DB_NAME}_test",
        MONGO_MIN_POOL_SIZE=0,
        MONGO_SERVER_SELECTION_TIMEOUT_MS=2000,
    )
    store = MongoBookingStore(test_settings)
    try:
        await store.connect()
    except ConnectionFailure as e:
        await store.close()
        pytest.skip(f"MongoDB not reachable at {test_settings.MONGODB_URI}: {e}")

    await store.client.drop_database(test_settings.DB_NAME)
    yield store

    await store.client.drop_database(test_settings.DB_NAME)
    await store.close()


@pytest.fixture
def mongo_ctx(mongo_store):
    return BookingContext(store=mongo_store, materialized=False)


@pytest.fixture
async def seeded_mongo_ctx(mongo_ctx, sample_bookings):
    for booking in sample_bookings:
        await crud_booking.create_booking(mongo_ctx, booking)
    return mongo_ctx
