# FILE: backend/casedesk/core/websocket_manager.py

import logging
from typing import Callable, Dict, List, Optional, Set
from fastapi import WebSocket
import asyncio

from ..models.case import Case
from ..services.sync_service import CaseSync

logger = logging.getLogger(__name__)

def cases_message(cases: List[Case], error: Optional[str] = None) -> dict:
    return {
        "type": "cases_snapshot",
        "cases": [c.model_dump(mode="json") for c in cases],
        "error": error,
    }

class ConnectionManager:
    """
    Manages active WebSocket connections, organized by user_id.
    All sockets of one user share a single live CaseSync; it starts with the first
    socket and is torn down with the last.
    """
    def __init__(self):
        self.active_connections: Dict[str, Set[WebSocket]] = {}
        self.syncs: Dict[str, CaseSync] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: str, sync_factory: Callable[[], CaseSync]) -> CaseSync:
        """Registers an accepted WebSocket and makes sure the user's live sync is running."""
        async with self._lock:
            sockets = self.active_connections.setdefault(user_id, set())
            sockets.add(websocket)
            sync = self.syncs.get(user_id)
            if sync is None:
                sync = sync_factory()
                self.syncs[user_id] = sync
                sync.subscribe(lambda cases: self.broadcast_to_user(user_id, cases_message(cases, sync.context.last_error)))
                await sync.start()
        logger.info(f"User {user_id} connected to case stream ({len(sockets)} open)")
        return sync

    async def disconnect(self, websocket: WebSocket, user_id: str):
        """Removes a WebSocket; stops the user's sync when no sockets remain."""
        sync = None
        async with self._lock:
            if user_id in self.active_connections:
                self.active_connections[user_id].discard(websocket)
                if not self.active_connections[user_id]:
                    del self.active_connections[user_id]
                    sync = self.syncs.pop(user_id, None)
        if sync is not None:
            await sync.stop()
        logger.info(f"User {user_id} disconnected from case stream")

    async def broadcast_to_user(self, user_id: str, message: dict):
        """Sends a JSON message to every socket the user has open."""
        connections = list(self.active_connections.get(user_id, ()))
        if connections:
            await asyncio.gather(*(c.send_json(message) for c in connections), return_exceptions=True)

    async def close_all(self):
        async with self._lock:
            syncs = list(self.syncs.values())
            self.syncs.clear()
            self.active_connections.clear()
        for sync in syncs:
            await sync.stop()

manager = ConnectionManager()
