from datetime import datetime, timezone

from bson import ObjectId

from app.core.config import Settings
from app.db.mongo import (
    MongoBookingStore,
    from_mongo,
    identity_filter,
    live_fields_stage,
    materialized_fields_stages,
    to_mongo,
    to_mongo_filter,
)
from app.services.query_builder import build_filter


def test_to_mongo_filter_renames_identity_everywhere():
    query_filter = build_filter({"id": "b-1", "email": "A@X.com", "date_from": "2024-01-01"})
    assert to_mongo_filter(query_filter) == {
        "_id": "b-1",
        "$or": [{"email_norm": "a@x.com"}, {"user.email": "A@X.com"}],
        "created_at_dt": {"$gte": datetime(2024, 1, 1, tzinfo=timezone.utc)},
    }
    assert to_mongo_filter({"$or": [{"id": "b-1"}, {"id": "b-2"}]}) == {"$or": [{"_id": "b-1"}, {"_id": "b-2"}]}


def test_identity_filter_tolerates_object_ids():
    assert identity_filter("b-1") == {"_id": {"$in": ["b-1"]}}
    oid = ObjectId()
    assert identity_filter(str(oid)) == {"_id": {"$in": [str(oid), oid]}}


def test_document_mapping():
    assert to_mongo({"id": "b-1", "status": "PENDING"}) == {"_id": "b-1", "status": "PENDING"}
    assert from_mongo({"_id": "b-1", "status": "PENDING"}) == {"id": "b-1", "status": "PENDING"}
    oid = ObjectId()
    assert from_mongo({"_id": oid}) == {"id": str(oid)}
    assert from_mongo(None) is None


def test_live_stage_derives_timestamp_and_email():
    fields = live_fields_stage()["$addFields"]
    assert set(fields) == {"created_at_dt", "email_norm"}
    assert fields["created_at_dt"]["$convert"]["onError"] is None


def test_materialized_stages_add_lima_timestamp_and_seat_count():
    stages = materialized_fields_stages()
    assert stages[0] == live_fields_stage()
    fields = stages[1]["$addFields"]
    assert fields["created_at_pe"]["$dateToString"]["timezone"] == "America/Lima"
    assert "seat_count" in fields


def test_store_uses_configured_collation():
    store = MongoBookingStore(Settings(COLLATION_LOCALE="es", COLLATION_STRENGTH=1))
    assert store.collation.document == {"locale": "es", "strength": 1}
