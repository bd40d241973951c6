# FILE: backend/casedesk/api/endpoints/dependencies.py
# Request-scoped wiring: store, cache, identity, per-user DataContext and CaseService.

from fastapi import Depends, HTTPException, status, WebSocket, WebSocketException
from fastapi.security import OAuth2PasswordBearer
from typing import Annotated, Any
import redis

from ...core.context import DataContext
from ...core.db import get_async_db, get_redis_client
from ...core.exceptions import AuthFailure
from ...models.user import Identity
from ...services.cache_service import SnapshotCache
from ...services.case_service import CaseService
from ...services.identity_service import IdentityProvider
from ...services.record_store import RecordStore

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/signin")

def get_record_store(db: Any = Depends(get_async_db)) -> RecordStore:
    return RecordStore(db)

def get_snapshot_cache(client: redis.Redis = Depends(get_redis_client)) -> SnapshotCache:
    return SnapshotCache(client)

def get_identity_provider(db: Any = Depends(get_async_db)) -> IdentityProvider:
    return IdentityProvider(db)

async def get_current_identity(
    token: Annotated[str, Depends(oauth2_scheme)],
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Identity:
    try:
        return await provider.identity_from_token(token)
    except AuthFailure as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

def get_data_context(
    identity: Annotated[Identity, Depends(get_current_identity)],
    cache: SnapshotCache = Depends(get_snapshot_cache),
) -> DataContext:
    return DataContext(user_id=identity.id, cache=cache)

def get_case_service(
    context: Annotated[DataContext, Depends(get_data_context)],
    store: RecordStore = Depends(get_record_store),
) -> CaseService:
    return CaseService(store, context)

async def get_identity_ws(
    websocket: WebSocket,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Identity:
    # Browsers cannot set headers on websockets, so the token travels as the first subprotocol or ?token=.
    subprotocols = websocket.scope.get("subprotocols") or []
    token = subprotocols[0] if subprotocols else websocket.query_params.get("token", "")
    try:
        return await provider.identity_from_token(token)
    except AuthFailure as e:
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
