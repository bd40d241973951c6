# FILE: backend/casedesk/api/endpoints/auth.py
# Identity provider over HTTP. Failed attempts come back as 401 with the provider's message.

from typing import Any
from fastapi import APIRouter, Depends, HTTPException, status

from ...models.user import AuthResult, Credentials, Identity, ProviderSignIn
from ...services.identity_service import IdentityProvider
from .dependencies import get_current_identity, get_identity_provider

router = APIRouter()

def _raise_for_failure(result: AuthResult) -> AuthResult:
    if not result.success:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=result.error)
    return result

@router.post("/signup", response_model=AuthResult, status_code=status.HTTP_201_CREATED)
async def sign_up(credentials: Credentials, provider: IdentityProvider = Depends(get_identity_provider)) -> Any:
    result = await provider.sign_up(credentials.email, credentials.password)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=result.error)
    return result

@router.post("/signin", response_model=AuthResult)
async def sign_in(credentials: Credentials, provider: IdentityProvider = Depends(get_identity_provider)) -> Any:
    return _raise_for_failure(await provider.sign_in(credentials.email, credentials.password))

@router.post("/provider", response_model=AuthResult)
async def sign_in_with_provider(payload: ProviderSignIn, provider: IdentityProvider = Depends(get_identity_provider)) -> Any:
    return _raise_for_failure(await provider.sign_in_with_provider(payload.id_token))

@router.post("/signout", response_model=AuthResult)
async def sign_out(provider: IdentityProvider = Depends(get_identity_provider)) -> Any:
    # Tokens are stateless; the client drops its token and its cached snapshot.
    return await provider.sign_out()

@router.get("/me", response_model=Identity)
async def read_current_identity(identity: Identity = Depends(get_current_identity)) -> Any:
    return identity
