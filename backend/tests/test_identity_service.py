import asyncio

import httpx

from casedesk.services.identity_service import IdentityProvider


def _google(claims, status_code=200):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["id_token"] == "google-token"
        return httpx.Response(status_code, json=claims)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_sign_up_then_sign_in(users_db):
    provider = IdentityProvider(users_db)

    signed_up = asyncio.run(provider.sign_up("Ada@LawFirm.com", "correct horse"))
    assert signed_up.success
    assert signed_up.user.email == "ada@lawfirm.com"
    assert signed_up.access_token

    signed_in = asyncio.run(provider.sign_in("ada@lawfirm.com", "correct horse"))
    assert signed_in.success
    assert signed_in.user.id == signed_up.user.id


def test_wrong_password_is_an_auth_failure(users_db):
    provider = IdentityProvider(users_db)
    asyncio.run(provider.sign_up("ada@lawfirm.com", "correct horse"))

    result = asyncio.run(provider.sign_in("ada@lawfirm.com", "battery staple"))

    assert not result.success
    assert result.error == "Incorrect email or password"
    assert provider.error == result.error


def test_duplicate_sign_up_is_rejected(users_db):
    provider = IdentityProvider(users_db)
    asyncio.run(provider.sign_up("ada@lawfirm.com", "correct horse"))

    result = asyncio.run(provider.sign_up("ADA@lawfirm.com", "another pass"))

    assert not result.success
    assert "already exists" in result.error


def test_identity_listeners_follow_sign_in_and_out(users_db):
    provider = IdentityProvider(users_db)
    seen = []
    unsubscribe = provider.on_identity_changed(seen.append)

    asyncio.run(provider.sign_up("ada@lawfirm.com", "correct horse"))
    asyncio.run(provider.sign_out())
    unsubscribe()
    asyncio.run(provider.sign_in("ada@lawfirm.com", "correct horse"))

    assert seen[0] is None
    assert seen[1].email == "ada@lawfirm.com"
    assert seen[2] is None
    assert len(seen) == 3


def test_token_resolves_back_to_identity(users_db):
    provider = IdentityProvider(users_db)
    result = asyncio.run(provider.sign_up("ada@lawfirm.com", "correct horse"))

    identity = asyncio.run(IdentityProvider(users_db).identity_from_token(result.access_token))

    assert identity == result.user


def test_google_sign_in_creates_account(users_db):
    claims = {"iss": "https://accounts.google.com", "sub": "g-123", "email": "grace@lawfirm.com", "email_verified": "true"}

    async def scenario():
        async with _google(claims) as client:
            return await IdentityProvider(users_db, http_client=client).sign_in_with_provider("google-token")

    result = asyncio.run(scenario())

    assert result.success
    assert result.user.email == "grace@lawfirm.com"
    assert users_db.users.docs[0]["provider"] == "google"
    assert users_db.users.docs[0]["provider_subject"] == "g-123"


def test_google_sign_in_rejects_invalid_token(users_db):
    async def scenario():
        async with _google({"error": "invalid_token"}, status_code=400) as client:
            return await IdentityProvider(users_db, http_client=client).sign_in_with_provider("google-token")

    result = asyncio.run(scenario())

    assert not result.success
    assert result.error == "Google sign in failed: invalid token"
    assert users_db.users.docs == []


def test_google_sign_in_requires_verified_email(users_db):
    claims = {"iss": "accounts.google.com", "sub": "g-1", "email": "x@lawfirm.com", "email_verified": "false"}

    async def scenario():
        async with _google(claims) as client:
            return await IdentityProvider(users_db, http_client=client).sign_in_with_provider("google-token")

    assert not asyncio.run(scenario()).success
