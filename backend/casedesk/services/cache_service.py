# FILE: backend/casedesk/services/cache_service.py
# CASEDESK - SNAPSHOT CACHE
# 1. Keys: cases_<userId> / hearings_<userId>, each holding the last full snapshot as JSON text.
# 2. Every fresh snapshot overwrites the previous one. No field-level merge.
# 3. A missing or corrupt entry reads as an empty snapshot.

import json
from datetime import date, datetime
from typing import Any, Dict, List, Tuple

import redis
import structlog
from bson import ObjectId
from bson.timestamp import Timestamp

logger = structlog.get_logger(__name__)

Records = List[Dict[str, Any]]

def _json_default(value: Any) -> Any:
    if isinstance(value, Timestamp):
        return value.as_datetime().isoformat()
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, ObjectId):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")

def cases_key(user_id: str) -> str:
    return f"cases_{user_id}"

def hearings_key(user_id: str) -> str:
    return f"hearings_{user_id}"

class SnapshotCache:
    def __init__(self, client: redis.Redis):
        self.client = client

    def _read(self, key: str) -> Records:
        try:
            payload = self.client.get(key)
        except redis.RedisError as e:
            logger.warning("Snapshot cache read failed", key=key, error=str(e))
            return []
        if not payload:
            return []
        try:
            data = json.loads(payload)
        except (TypeError, ValueError):
            logger.warning("Discarding corrupt snapshot cache entry", key=key)
            return []
        return data if isinstance(data, list) else []

    def _write(self, key: str, records: Records) -> None:
        try:
            self.client.set(key, json.dumps(records, default=_json_default))
        except redis.RedisError as e:
            logger.warning("Snapshot cache write failed", key=key, error=str(e))

    def load(self, user_id: str) -> Tuple[Records, Records]:
        return self._read(cases_key(user_id)), self._read(hearings_key(user_id))

    def has_snapshot(self, user_id: str) -> bool:
        try:
            return bool(self.client.exists(cases_key(user_id), hearings_key(user_id)) == 2)
        except redis.RedisError:
            return False

    def save_cases(self, user_id: str, records: Records) -> None:
        self._write(cases_key(user_id), records)

    def save_hearings(self, user_id: str, records: Records) -> None:
        self._write(hearings_key(user_id), records)

    def clear(self, user_id: str) -> None:
        try:
            self.client.delete(cases_key(user_id), hearings_key(user_id))
        except redis.RedisError as e:
            logger.warning("Snapshot cache clear failed", user_id=user_id, error=str(e))
