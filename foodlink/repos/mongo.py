# foodlink/repos/mongo.py
from functools import lru_cache
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from foodlink.core.config import settings
from foodlink.core.errors import ConflictError
from foodlink.core.states import ACTIVE_ASSIGNMENT
from foodlink.repos.inmemory import Sort, new_id


@lru_cache(maxsize=1)
def get_client() -> AsyncIOMotorClient:
    # Cached to play nicely with uvicorn --reload
    return AsyncIOMotorClient(settings.mongo_uri, tz_aware=True)


class MongoCollection:
    def __init__(self, col: AsyncIOMotorCollection):
        self.col = col
        self.name = col.name

    def _duplicate(self, ex: DuplicateKeyError) -> ConflictError:
        keys = ", ".join((ex.details or {}).get("keyValue", {}).keys()) or "key"
        return ConflictError(f"Duplicate {self.name[:-1]} for {keys}")

    async def get(self, doc_id: str) -> Optional[dict]:
        return await self.col.find_one({"_id": doc_id})

    async def find(self, flt: Optional[dict] = None, sort: Optional[Sort] = None,
                   skip: int = 0, limit: int = 0) -> List[dict]:
        cur = self.col.find(flt or {})
        if sort:
            cur = cur.sort(sort)
        if skip:
            cur = cur.skip(skip)
        if limit:
            cur = cur.limit(limit)
        return [d async for d in cur]

    async def find_one(self, flt: dict) -> Optional[dict]:
        return await self.col.find_one(flt)

    async def insert(self, doc: dict) -> dict:
        doc = dict(doc)
        doc.setdefault("_id", new_id())
        try:
            await self.col.insert_one(doc)
        except DuplicateKeyError as ex:
            raise self._duplicate(ex)
        return doc

    async def update(self, doc_id: str, fields: dict, expect: Optional[dict] = None) -> Optional[dict]:
        try:
            return await self.col.find_one_and_update(
                {"_id": doc_id, **(expect or {})},
                {"$set": fields},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as ex:
            raise self._duplicate(ex)

    async def update_where(self, flt: dict, fields: dict) -> Optional[dict]:
        try:
            return await self.col.find_one_and_update(
                flt, {"$set": fields}, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError as ex:
            raise self._duplicate(ex)

    async def update_many(self, flt: dict, fields: dict) -> int:
        try:
            res = await self.col.update_many(flt, {"$set": fields})
        except DuplicateKeyError as ex:
            raise self._duplicate(ex)
        return res.modified_count

    async def delete(self, doc_id: str) -> bool:
        res = await self.col.delete_one({"_id": doc_id})
        return res.deleted_count > 0

    async def count(self, flt: Optional[dict] = None) -> int:
        return await self.col.count_documents(flt or {})


class MongoStore:
    def __init__(self, client: Optional[AsyncIOMotorClient] = None, db_name: Optional[str] = None):
        self.client = client or get_client()
        self.db = self.client[db_name or settings.mongo_db]
        self.users = MongoCollection(self.db.users)
        self.donations = MongoCollection(self.db.donations)
        self.requests = MongoCollection(self.db.requests)
        self.assignments = MongoCollection(self.db.assignments)
        self.notifications = MongoCollection(self.db.notifications)

    async def ensure_indexes(self):
        async def ensure_index(col, keys, name: str, **kwargs):
            existing = [ix["name"] async for ix in col.list_indexes()]
            if name in existing:
                return
            await col.create_index(keys, name=name, **kwargs)

        db = self.db
        await ensure_index(db.users, [("email", ASCENDING)], "email_1", unique=True)
        await ensure_index(db.donations, [("donor_id", ASCENDING), ("status", ASCENDING)], "donor_status")
        await ensure_index(db.donations, [("city", ASCENDING), ("status", ASCENDING)], "city_status")
        await ensure_index(db.donations, [("created_at", DESCENDING)], "created_at_-1")
        await ensure_index(db.requests, [("ngo_id", ASCENDING), ("status", ASCENDING)], "ngo_status")
        await ensure_index(db.requests, [("donation_id", ASCENDING)], "donation_1")
        await ensure_index(db.requests, [("donation_id", ASCENDING), ("ngo_id", ASCENDING)],
                           "donation_ngo_unique", unique=True)
        await ensure_index(db.assignments, [("volunteer_id", ASCENDING), ("status", ASCENDING)],
                           "volunteer_status")
        # one active assignment per donation ($in in partial filters needs MongoDB 6.0+)
        await ensure_index(db.assignments, [("donation_id", ASCENDING)], "donation_active_unique",
                           unique=True,
                           partialFilterExpression={"status": {"$in": ACTIVE_ASSIGNMENT}})
        await ensure_index(db.notifications, [("recipient_id", ASCENDING), ("is_read", ASCENDING)],
                           "recipient_read")

    def close(self):
        self.client.close()
