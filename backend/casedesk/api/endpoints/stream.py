# FILE: backend/casedesk/api/endpoints/stream.py
# Live case view over a WebSocket. The cached snapshot is sent first, then one message per store snapshot.

import logging
from typing import Annotated
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends

from ...core.context import DataContext
from ...core.websocket_manager import manager, cases_message
from ...models.user import Identity
from ...services.cache_service import SnapshotCache
from ...services.record_store import RecordStore
from ...services.sync_service import CaseSync
from .dependencies import get_identity_ws, get_record_store, get_snapshot_cache

logger = logging.getLogger(__name__)
router = APIRouter()

@router.websocket("/ws")
async def websocket_cases_endpoint(
    websocket: WebSocket,
    identity: Annotated[Identity, Depends(get_identity_ws)],
    store: RecordStore = Depends(get_record_store),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    subprotocols = websocket.scope.get("subprotocols") or []
    await websocket.accept(subprotocol=subprotocols[0] if subprotocols else None)

    def sync_factory() -> CaseSync:
        return CaseSync(store, DataContext(user_id=identity.id, cache=cache))

    sync = await manager.connect(websocket, identity.id, sync_factory)
    try:
        await websocket.send_json(cases_message(sync.cases, sync.context.last_error))
        while True:
            # Clients only ping; all data flows server -> client.
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Case stream closed by client for user {identity.id}")
    except Exception as e:
        logger.error(f"Unexpected error in case stream for user {identity.id}: {e}", exc_info=True)
    finally:
        await manager.disconnect(websocket, identity.id)
