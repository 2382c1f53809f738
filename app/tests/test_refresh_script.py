import pytest

from app.core.config import Settings
from app.db.core import build_store
from app.db.memory import InMemoryBookingStore
from app.db.mongo import MongoBookingStore
from app.scripts import refresh_materialized


def test_parse_args():
    args = refresh_materialized.parse_args(["--rebuild"])
    assert args.rebuild is True
    assert args.booking_id is None
    args = refresh_materialized.parse_args(["--id", "b-1"])
    assert args.booking_id == "b-1"


def test_build_store_backends():
    assert isinstance(build_store(Settings(STORE_BACKEND="memory")), InMemoryBookingStore)
    assert isinstance(build_store(Settings(STORE_BACKEND="MONGO")), MongoBookingStore)
    with pytest.raises(ValueError):
        build_store(Settings(STORE_BACKEND="postgres"))


async def test_refresh_runs_against_configured_store(monkeypatch):
    created = []

    def fake_build_store(settings):
        store = InMemoryBookingStore()
        created.append(store)
        return store

    monkeypatch.setattr(refresh_materialized, "build_store", fake_build_store)
    settings = Settings(STORE_BACKEND="memory")
    await refresh_materialized.refresh(refresh_materialized.parse_args(["--rebuild"]), settings)
    assert created[0].materialized == {}
    assert "email_norm" in created[0].materialized_indexes
