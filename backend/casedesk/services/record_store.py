# FILE: backend/casedesk/services/record_store.py
# CASEDESK - RECORD STORE ADAPTER (MongoDB / Motor)
# 1. QUERIES: Equality filters only. Records come back as plain dicts with a string 'id'.
# 2. WRITES: Single-record create/update/delete plus all-or-nothing batches (multi-document transaction).
# 3. LIVE: snapshots() yields the full filtered record set up front and again after every change.
# 4. TIMESTAMPS: SERVER_TIMESTAMP values are resolved by the server via $currentDate.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

import structlog
from bson import ObjectId
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from ..core.exceptions import StoreReadFailure, StoreWriteFailure
from ..models.common import validate_object_id

logger = structlog.get_logger(__name__)

CASES = "cases"
HEARINGS = "hearing_dates"

Records = List[Dict[str, Any]]

class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"

SERVER_TIMESTAMP = _ServerTimestamp()

def _object_id(record_id: Any) -> ObjectId:
    try:
        return validate_object_id(record_id)
    except ValueError:
        raise StoreWriteFailure(f"Invalid record id: {record_id}")

def _to_update(data: Dict[str, Any]) -> Dict[str, Any]:
    fields = {k: v for k, v in data.items() if v is not SERVER_TIMESTAMP and k not in ("id", "_id")}
    stamped = {k: True for k, v in data.items() if v is SERVER_TIMESTAMP}
    update: Dict[str, Any] = {}
    if fields:
        update["$set"] = fields
    if stamped:
        update["$currentDate"] = stamped
    return update

# Deletes carry no document, so they reach every subscriber of the collection.
UNSCOPED_CHANGES = ["delete", "drop", "rename", "dropDatabase", "invalidate"]

def change_pipeline(filters: Dict[str, Any]) -> List[Dict[str, Any]]:
    scoped = {f"fullDocument.{k}": v for k, v in filters.items()}
    if not scoped:
        return []
    return [{"$match": {"$or": [scoped, {"operationType": {"$in": UNSCOPED_CHANGES}}]}}]

def to_record(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(doc)
    record_id = doc.pop("_id", None)
    return {"id": str(record_id), **doc}

@dataclass
class BatchOp:
    kind: str
    collection: str
    record_id: str
    data: Dict[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None

class WriteBatch:
    """Collects writes to be committed together by RecordStore.commit()."""

    def __init__(self):
        self.ops: List[BatchOp] = []

    def set(self, collection: str, record_id: str, data: Dict[str, Any]) -> "WriteBatch":
        self.ops.append(BatchOp("set", collection, record_id, dict(data)))
        return self

    def delete(self, collection: str, record_id: str, user_id: Optional[str] = None) -> "WriteBatch":
        self.ops.append(BatchOp("delete", collection, record_id, user_id=user_id))
        return self

    def __len__(self) -> int:
        return len(self.ops)

class RecordStore:
    def __init__(self, db: Any):
        self.db: Any = db

    @staticmethod
    def new_id() -> str:
        return str(ObjectId())

    @staticmethod
    def batch() -> WriteBatch:
        return WriteBatch()

    def _scope(self, record_id: str, user_id: Optional[str]) -> Dict[str, Any]:
        scope: Dict[str, Any] = {"_id": _object_id(record_id)}
        if user_id:
            scope["user_id"] = user_id
        return scope

    async def find(self, collection: str, filters: Dict[str, Any]) -> Records:
        try:
            return [to_record(doc) async for doc in self.db[collection].find(filters)]
        except PyMongoError as e:
            raise StoreReadFailure(f"Failed to load {collection}: {e}") from e

    async def get(self, collection: str, record_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        doc = await self.db[collection].find_one(self._scope(record_id, user_id))
        return to_record(doc) if doc else None

    async def create(self, collection: str, data: Dict[str, Any]) -> str:
        record_id = self.new_id()
        await self.db[collection].update_one({"_id": _object_id(record_id)}, _to_update(data), upsert=True)
        return record_id

    async def update(self, collection: str, record_id: str, data: Dict[str, Any], user_id: Optional[str] = None) -> None:
        result = await self.db[collection].update_one(self._scope(record_id, user_id), _to_update(data))
        if result.matched_count == 0:
            raise StoreWriteFailure(f"No {collection} record with id {record_id}")

    async def delete(self, collection: str, record_id: str, user_id: Optional[str] = None) -> None:
        await self.db[collection].delete_one(self._scope(record_id, user_id))

    async def commit(self, batch: WriteBatch) -> None:
        """Applies every op in one multi-document transaction; on any error nothing is visible."""
        if not batch.ops:
            return
        async with await self.db.client.start_session() as session:
            async with session.start_transaction():
                for op in batch.ops:
                    collection = self.db[op.collection]
                    if op.kind == "set":
                        await collection.update_one(
                            {"_id": _object_id(op.record_id)}, _to_update(op.data), upsert=True, session=session
                        )
                    elif op.kind == "delete":
                        await collection.delete_one(self._scope(op.record_id, op.user_id), session=session)
                    else:
                        raise StoreWriteFailure(f"Unknown batch operation: {op.kind}")
        logger.info("Batch committed", ops=len(batch.ops))

    async def snapshots(self, collection: str, filters: Dict[str, Any]) -> AsyncIterator[Records]:
        # The stream is opened before the first read so no change between the two is missed.
        try:
            async with self.db[collection].watch(change_pipeline(filters), full_document="updateLookup") as stream:
                yield await self.find(collection, filters)
                async for change in stream:
                    logger.debug("Change received", collection=collection, operation=change.get("operationType"))
                    yield await self.find(collection, filters)
        except PyMongoError as e:
            raise StoreReadFailure(f"Lost {collection} subscription: {e}") from e

    async def ensure_indexes(self) -> None:
        await self.db[CASES].create_index([("user_id", ASCENDING)])
        await self.db[HEARINGS].create_index([("user_id", ASCENDING)])
        await self.db[HEARINGS].create_index([("case_id", ASCENDING)])
        await self.db.users.create_index([("email", ASCENDING)], unique=True)
