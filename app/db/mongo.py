import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, AsyncMongoClient
from pymongo.collation import Collation
from pymongo.errors import DuplicateKeyError as MongoDuplicateKeyError

from app.core.config import Settings
from app.db.base import MATERIALIZED_INDEX_FIELDS, BookingStore, DuplicateKeyError, UpdateResult
from app.services.derive import LIMA_TZ_NAME
from app.services.query_builder import ListQuery

logger = logging.getLogger(__name__)

# aggregation equivalents of app.services.derive
CREATED_AT_DT_EXPR = {
    "$convert": {"input": "$created_at", "to": "date", "onError": None, "onNull": None}
}
EMAIL_NORM_EXPR = {"$toLower": "$user.email"}


def live_fields_stage() -> Dict[str, Any]:
    return {
        "$addFields": {
            "created_at_dt": CREATED_AT_DT_EXPR,
            "email_norm": EMAIL_NORM_EXPR,
        }
    }


def materialized_fields_stages() -> List[Dict[str, Any]]:
    # created_at_pe reads created_at_dt, so it needs its own stage
    return [
        live_fields_stage(),
        {
            "$addFields": {
                "created_at_pe": {
                    "$dateToString": {
                        "date": "$created_at_dt",
                        "format": "%Y-%m-%dT%H:%M:%S.%L%z",
                        "timezone": LIMA_TZ_NAME,
                    }
                },
                "seat_count": {
                    "$size": {"$cond": [{"$isArray": "$seats"}, "$seats", []]}
                },
            }
        },
    ]


def to_mongo_field(name: str) -> str:
    return "_id" if name == "id" else name


def to_mongo_filter(query_filter: Any) -> Any:
    """Rename the public ``id`` key to ``_id`` anywhere in a filter document."""
    if isinstance(query_filter, dict):
        return {to_mongo_field(key): to_mongo_filter(value) for key, value in query_filter.items()}
    if isinstance(query_filter, list):
        return [to_mongo_filter(item) for item in query_filter]
    return query_filter


def identity_filter(booking_id: str) -> Dict[str, Any]:
    """Match an identity stored either as a string or as an ObjectId."""
    candidates: List[Any] = [booking_id]
    if ObjectId.is_valid(booking_id):
        candidates.append(ObjectId(booking_id))
    return {"_id": {"$in": candidates}}


def from_mongo(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    out = dict(doc)
    identity = out.pop("_id", None)
    out = {"id": str(identity) if isinstance(identity, ObjectId) else identity, **out}
    return out


def to_mongo(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(doc)
    identity = out.pop("id")
    return {"_id": identity, **out}


class MongoBookingStore(BookingStore):
    def __init__(self, settings: Settings):
        self.settings = settings
        self.client: Optional[AsyncMongoClient] = None
        self.db = None
        self.collation = Collation(
            locale=settings.COLLATION_LOCALE, strength=settings.COLLATION_STRENGTH)

    async def connect(self) -> None:
        self.client = AsyncMongoClient(
            self.settings.MONGODB_URI,
            maxPoolSize=self.settings.MONGO_MAX_POOL_SIZE,
            minPoolSize=self.settings.MONGO_MIN_POOL_SIZE,
            serverSelectionTimeoutMS=self.settings.MONGO_SERVER_SELECTION_TIMEOUT_MS,
            tz_aware=True,
        )
        self.db = self.client[self.settings.DB_NAME]
        # fails after serverSelectionTimeoutMS when the server is unreachable
        await self.ping()
        logger.info("Connected to MongoDB database %s", self.settings.DB_NAME)

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
            self.client = None
            self.db = None

    @property
    def bookings(self):
        if self.db is None:
            raise RuntimeError("MongoDB is not initialized")
        return self.db[self.settings.BOOKINGS_COLLECTION]

    @property
    def materialized(self):
        if self.db is None:
            raise RuntimeError("MongoDB is not initialized")
        return self.db[self.settings.MATERIALIZED_COLLECTION]

    async def ping(self) -> None:
        await self.db.command({"ping": 1})

    async def has_materialized(self) -> bool:
        names = await self.db.list_collection_names(
            filter={"name": self.settings.MATERIALIZED_COLLECTION})
        return self.settings.MATERIALIZED_COLLECTION in names

    async def insert(self, doc: Dict[str, Any]) -> None:
        try:
            await self.bookings.insert_one(to_mongo(doc))
        except MongoDuplicateKeyError as e:
            raise DuplicateKeyError(from_mongo(e.details.get("keyValue") if e.details else None))

    async def find_by_id(self, booking_id: str) -> Optional[Dict[str, Any]]:
        return from_mongo(await self.bookings.find_one({"_id": booking_id}))

    async def update_and_fetch(self, booking_id: str, fields: Dict[str, Any]) -> UpdateResult:
        # raw findAndModify keeps lastErrorObject, which find_one_and_update hides
        try:
            response = await self.db.command({
                "findAndModify": self.settings.BOOKINGS_COLLECTION,
                "query": {"_id": booking_id},
                "update": {"$set": fields},
                "new": True,
                "upsert": False,
            })
        except MongoDuplicateKeyError as e:
            raise DuplicateKeyError(from_mongo(e.details.get("keyValue") if e.details else None))
        last_error = response.get("lastErrorObject") or {}
        matched = bool(last_error.get("updatedExisting") or last_error.get("n"))
        return UpdateResult(matched=matched, document=from_mongo(response.get("value")))

    async def delete(self, booking_id: str) -> bool:
        result = await self.bookings.delete_one({"_id": booking_id})
        return result.deleted_count == 1

    async def delete_materialized(self, booking_id: str) -> bool:
        result = await self.materialized.delete_one({"_id": booking_id})
        return result.deleted_count == 1

    async def list_live(self, query: ListQuery) -> List[Dict[str, Any]]:
        field, direction = query.sort
        pipeline = [
            live_fields_stage(),
            {"$match": to_mongo_filter(query.filter)},
            {"$sort": {to_mongo_field(field): direction}},
            {"$skip": query.skip},
            {"$limit": query.limit},
        ]
        cursor = await self.bookings.aggregate(pipeline, collation=self.collation)
        return [from_mongo(doc) for doc in await cursor.to_list()]

    async def list_materialized(self, query: ListQuery) -> List[Dict[str, Any]]:
        field, direction = query.sort
        cursor = (
            self.materialized
            .find(to_mongo_filter(query.filter), collation=self.collation)
            .sort(to_mongo_field(field), direction)
            .skip(query.skip)
            .limit(query.limit)
        )
        return [from_mongo(doc) for doc in await cursor.to_list()]

    async def _merge(self, match: Dict[str, Any]) -> None:
        pipeline = [
            {"$match": match},
            *materialized_fields_stages(),
            {
                "$merge": {
                    "into": self.settings.MATERIALIZED_COLLECTION,
                    "on": "_id",
                    "whenMatched": "replace",
                    "whenNotMatched": "insert",
                }
            },
        ]
        cursor = await self.bookings.aggregate(pipeline)
        await cursor.to_list()

    async def refresh_one(self, booking_id: str) -> None:
        await self._merge(identity_filter(booking_id))

    async def refresh_all(self, rebuild: bool = False) -> None:
        if rebuild:
            await self.db.drop_collection(self.settings.MATERIALIZED_COLLECTION)
            logger.info("Dropped %s", self.settings.MATERIALIZED_COLLECTION)
        await self._merge({})
        await self.ensure_materialized_indexes()

    async def ensure_materialized_indexes(self) -> None:
        # _id carries MongoDB's built-in unique index, which $merge relies on
        for field in MATERIALIZED_INDEX_FIELDS:
            await self.materialized.create_index([(field, ASCENDING)])
        logger.info("Ensured indexes on %s", self.settings.MATERIALIZED_COLLECTION)
