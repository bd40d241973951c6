# FILE: backend/casedesk/core/db.py
# CASEDESK - CONNECTIONS
# 1. MongoDB (Motor) is the record store. Transactions and change streams need a replica set.
# 2. Redis (sync) holds the per-user snapshot cache.
# 3. Connections are opened by the application lifespan, never at import time.

import redis
from pymongo.errors import ConnectionFailure
from urllib.parse import urlparse
from typing import Generator, Any, Optional
import structlog

from .config import settings

logger = structlog.get_logger(__name__)

async_mongo_client: Optional[Any] = None
async_db_instance: Optional[Any] = None
redis_sync_client: Optional[redis.Redis] = None

def _database_name(uri: str) -> str:
    db_name = urlparse(uri).path.lstrip('/')
    if not db_name:
        raise ValueError("Database name not found in DATABASE_URI.")
    return db_name

async def connect_to_motor():
    global async_mongo_client, async_db_instance
    if async_db_instance is not None: return

    logger.info("Connecting to MongoDB (Motor)")
    try:
        from motor.motor_asyncio import AsyncIOMotorClient
        client = AsyncIOMotorClient(settings.DATABASE_URI, serverSelectionTimeoutMS=5000, tz_aware=True)
        await client.admin.command('ping')
        db_name = _database_name(settings.DATABASE_URI)
        async_mongo_client = client
        async_db_instance = client[db_name]
        logger.info("Connected to MongoDB", database=db_name)
    except (ConnectionFailure, ValueError) as e:
        logger.error("Could not connect to MongoDB", error=str(e))
        raise

def connect_to_redis() -> redis.Redis:
    global redis_sync_client
    if redis_sync_client is not None: return redis_sync_client

    logger.info("Connecting to Redis")
    try:
        client = redis.from_url(settings.REDIS_URL, decode_responses=True)
        client.ping()
        redis_sync_client = client
        logger.info("Connected to Redis")
        return client
    except redis.ConnectionError as e:
        logger.error("Could not connect to Redis", error=str(e))
        raise

# --- Dependency Providers ---
def get_async_db() -> Generator[Any, None, None]:
    if async_db_instance is None:
        raise RuntimeError("Asynchronous database is not connected. Check application lifespan.")
    yield async_db_instance

def get_redis_client() -> Generator[redis.Redis, None, None]:
    if redis_sync_client is None:
        raise RuntimeError("Redis is not connected. Check application lifespan.")
    yield redis_sync_client

# --- Shutdown Logic ---
def close_mongo_connections():
    global async_mongo_client, async_db_instance
    if async_mongo_client is not None:
        async_mongo_client.close()
        logger.info("MongoDB connection closed")
    async_mongo_client = None
    async_db_instance = None

def close_redis_connection():
    global redis_sync_client
    if redis_sync_client is not None:
        redis_sync_client.close()
        logger.info("Redis connection closed")
    redis_sync_client = None
