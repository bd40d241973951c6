# FILE: backend/casedesk/core/lifespan.py
# CASEDESK - LIFESPAN
# 1. Connects MongoDB and Redis, then makes sure the tenant/back-reference indexes exist.
# 2. Shutdown stops every live case sync before closing connections.

from contextlib import asynccontextmanager
from fastapi import FastAPI
import logging

from . import db
from .logging import configure_logging
from .websocket_manager import manager
from ..services.record_store import RecordStore

logger = logging.getLogger(__name__)

async def create_mongo_indexes():
    try:
        await RecordStore(db.async_db_instance).ensure_indexes()
        logger.info("Database indexes verified")
    except Exception as e:
        logger.error(f"Index creation failed: {e}")

async def perform_shutdown():
    logger.info("Application shutdown sequence initiated")
    await manager.close_all()
    db.close_mongo_connections()
    db.close_redis_connection()
    logger.info("All connections closed")

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Application startup sequence initiated")

    await db.connect_to_motor()
    db.connect_to_redis()
    await create_mongo_indexes()

    logger.info("All resources initialized. Application is ready.")

    yield

    await perform_shutdown()
