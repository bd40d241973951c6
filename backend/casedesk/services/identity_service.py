# FILE: backend/casedesk/services/identity_service.py
# CASEDESK - IDENTITY PROVIDER
# 1. Email/password accounts (bcrypt) and Google Sign-In (ID token checked against Google's tokeninfo).
# 2. Every operation returns an AuthResult; failures are messages, never exceptions.
# 3. Listeners registered with on_identity_changed() hear every sign-in and sign-out.

from typing import Any, Callable, List, Optional

import httpx
import structlog

from ..core import security
from ..core.config import settings
from ..core.exceptions import AuthFailure
from ..models.user import AuthResult, Identity, UserInDB
from . import user_service

logger = structlog.get_logger(__name__)

IdentityListener = Callable[[Optional[Identity]], Any]

GOOGLE_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}

def to_identity(user: UserInDB) -> Identity:
    return Identity(id=str(user.id), email=user.email)

class IdentityProvider:
    def __init__(self, db: Any, http_client: Optional[httpx.AsyncClient] = None):
        self.db = db
        self.http_client = http_client
        self.current: Optional[Identity] = None
        self.error: Optional[str] = None
        self._listeners: List[IdentityListener] = []

    # --- IDENTITY CHANGES ---
    def on_identity_changed(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)
        listener(self.current)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_identity(self, identity: Optional[Identity]) -> None:
        self.current = identity
        for listener in list(self._listeners):
            try:
                listener(identity)
            except Exception as e:
                logger.warning("Identity listener failed", error=str(e))

    def _signed_in(self, user: UserInDB) -> AuthResult:
        identity = to_identity(user)
        self._set_identity(identity)
        token = security.create_access_token({"id": identity.id, "email": identity.email})
        return AuthResult(success=True, user=identity, access_token=token)

    def _failed(self, message: str) -> AuthResult:
        self.error = message
        logger.info("Authentication failed", error=message)
        return AuthResult(success=False, error=message)

    # --- OPERATIONS ---
    async def sign_up(self, email: str, password: str) -> AuthResult:
        self.error = None
        try:
            if await user_service.get_user_by_email(self.db, email):
                raise AuthFailure("A user with this email already exists.")
            user = await user_service.create_user(self.db, email, security.get_password_hash(password))
            return self._signed_in(user)
        except AuthFailure as e:
            return self._failed(e.message)
        except Exception as e:
            return self._failed(str(e) or "Sign up failed")

    async def sign_in(self, email: str, password: str) -> AuthResult:
        self.error = None
        try:
            user = await user_service.get_user_by_email(self.db, email)
            if not user or not user.hashed_password or not security.verify_password(password, user.hashed_password):
                raise AuthFailure("Incorrect email or password")
            await user_service.update_last_login(self.db, user.id)
            return self._signed_in(user)
        except AuthFailure as e:
            return self._failed(e.message)
        except Exception as e:
            return self._failed(str(e) or "Sign in failed")

    async def _verify_google_token(self, id_token: str) -> dict:
        client = self.http_client or httpx.AsyncClient(timeout=10.0)
        try:
            response = await client.get(settings.GOOGLE_TOKENINFO_URL, params={"id_token": id_token})
        finally:
            if self.http_client is None:
                await client.aclose()
        if response.status_code != 200:
            raise AuthFailure("Google sign in failed: invalid token")

        claims = response.json()
        if claims.get("iss") not in GOOGLE_ISSUERS:
            raise AuthFailure("Google sign in failed: unexpected issuer")
        if settings.GOOGLE_CLIENT_ID and claims.get("aud") != settings.GOOGLE_CLIENT_ID:
            raise AuthFailure("Google sign in failed: token was issued for another application")
        if str(claims.get("email_verified", "")).lower() != "true" or not claims.get("email"):
            raise AuthFailure("Google sign in failed: email is not verified")
        return claims

    async def sign_in_with_provider(self, id_token: str) -> AuthResult:
        self.error = None
        try:
            claims = await self._verify_google_token(id_token)
            user = await user_service.get_or_create_provider_user(self.db, claims["email"], "google", str(claims.get("sub", "")))
            return self._signed_in(user)
        except AuthFailure as e:
            return self._failed(e.message)
        except httpx.HTTPError as e:
            return self._failed(f"Google sign in failed: {e}")
        except Exception as e:
            return self._failed(str(e) or "Google sign in failed")

    async def sign_out(self) -> AuthResult:
        self.error = None
        self._set_identity(None)
        return AuthResult(success=True)

    async def identity_from_token(self, token: str) -> Identity:
        """Resolves a bearer token to the signed-in identity. Raises AuthFailure."""
        payload = security.decode_token(token)
        user = await user_service.get_user_by_id(self.db, payload.get("id") or payload.get("sub"))
        if user is None:
            raise AuthFailure("Could not validate credentials")
        identity = to_identity(user)
        if self.current != identity:
            self._set_identity(identity)
        return identity
