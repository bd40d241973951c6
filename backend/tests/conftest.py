import asyncio
import copy
import os
import pathlib
import sys
import time
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId
from bson.timestamp import Timestamp

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.append(str(REPO_ROOT))

os.environ.setdefault("SECRET_KEY", "test-secret-key")

from casedesk.core.context import DataContext
from casedesk.core.exceptions import StoreWriteFailure
from casedesk.services.cache_service import SnapshotCache
from casedesk.services.record_store import SERVER_TIMESTAMP, WriteBatch


class FakeRedis:
    """Just the string commands the snapshot cache uses."""

    def __init__(self):
        self.data: Dict[str, str] = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value
        return True

    def exists(self, *keys):
        return sum(1 for k in keys if k in self.data)

    def delete(self, *keys):
        return sum(1 for k in keys if self.data.pop(k, None) is not None)


class InMemoryRecordStore:
    """Record store double with the same surface as RecordStore, including atomic batches and live snapshots."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.fail_commit_after: Optional[int] = None
        self.fail_reads = False
        self.fail_writes = False
        self._subscribers: List[asyncio.Queue] = []

    @staticmethod
    def new_id() -> str:
        return str(ObjectId())

    @staticmethod
    def batch() -> WriteBatch:
        return WriteBatch()

    def _collection(self, name, collections=None):
        return (self.collections if collections is None else collections).setdefault(name, {})

    def _changed(self):
        for queue in self._subscribers:
            queue.put_nowait(None)

    @staticmethod
    def _resolve(data):
        now = Timestamp(int(time.time()), 1)
        return {k: (now if v is SERVER_TIMESTAMP else copy.deepcopy(v)) for k, v in data.items() if k != "id"}

    @staticmethod
    def _owned(record, user_id):
        return user_id is None or record.get("user_id") == user_id

    def seed(self, collection, record_id=None, **fields):
        record_id = record_id or self.new_id()
        self._collection(collection)[record_id] = dict(fields)
        return record_id

    def all(self, collection):
        return [{"id": k, **v} for k, v in self._collection(collection).items()]

    async def find(self, collection, filters):
        if self.fail_reads:
            raise ConnectionError("store unreachable")
        return [
            {"id": k, **copy.deepcopy(v)}
            for k, v in self._collection(collection).items()
            if all(v.get(f) == expected for f, expected in filters.items())
        ]

    async def get(self, collection, record_id, user_id=None):
        record = self._collection(collection).get(record_id)
        if record is None or not self._owned(record, user_id):
            return None
        return {"id": record_id, **copy.deepcopy(record)}

    async def create(self, collection, data):
        if self.fail_writes:
            raise StoreWriteFailure("write rejected")
        record_id = self.new_id()
        self._collection(collection)[record_id] = self._resolve(data)
        self._changed()
        return record_id

    async def update(self, collection, record_id, data, user_id=None):
        if self.fail_writes:
            raise StoreWriteFailure("write rejected")
        record = self._collection(collection).get(record_id)
        if record is None or not self._owned(record, user_id):
            raise StoreWriteFailure(f"No {collection} record with id {record_id}")
        record.update(self._resolve(data))
        self._changed()

    async def delete(self, collection, record_id, user_id=None):
        if self.fail_writes:
            raise StoreWriteFailure("write rejected")
        record = self._collection(collection).get(record_id)
        if record is not None and self._owned(record, user_id):
            del self._collection(collection)[record_id]
            self._changed()

    async def commit(self, batch):
        staged = copy.deepcopy(self.collections)
        for applied, op in enumerate(batch.ops):
            if self.fail_commit_after is not None and applied >= self.fail_commit_after:
                raise StoreWriteFailure("transaction aborted")
            records = self._collection(op.collection, staged)
            if op.kind == "set":
                records[op.record_id] = self._resolve(op.data)
            elif op.kind == "delete":
                record = records.get(op.record_id)
                if record is not None and self._owned(record, op.user_id):
                    del records[op.record_id]
        self.collections = staged
        self._changed()

    async def snapshots(self, collection, filters):
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)
        try:
            yield await self.find(collection, filters)
            while True:
                await queue.get()
                yield await self.find(collection, filters)
        finally:
            self._subscribers.remove(queue)


class FakeUsersCollection:
    def __init__(self):
        self.docs: List[Dict[str, Any]] = []

    def _match(self, doc, query):
        return all(doc.get(k) == v for k, v in query.items())

    async def find_one(self, query):
        for doc in self.docs:
            if self._match(doc, query):
                return copy.deepcopy(doc)
        return None

    async def insert_one(self, doc):
        self.docs.append(copy.deepcopy(doc))

    async def update_one(self, query, update):
        for doc in self.docs:
            if self._match(doc, query):
                doc.update(update.get("$set", {}))
                return


class FakeUsersDb:
    def __init__(self):
        self.users = FakeUsersCollection()


USER_ID = "user-1"


@pytest.fixture()
def store():
    return InMemoryRecordStore()


@pytest.fixture()
def fake_redis():
    return FakeRedis()


@pytest.fixture()
def cache(fake_redis):
    return SnapshotCache(fake_redis)


@pytest.fixture()
def context(cache):
    return DataContext(user_id=USER_ID, cache=cache)


@pytest.fixture()
def users_db():
    return FakeUsersDb()
