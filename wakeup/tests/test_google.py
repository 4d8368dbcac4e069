"""
Test cases for Google sign-in against a fake tokeninfo endpoint.
"""
import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from wakeup.auth.errors import InvalidProviderToken, ProviderUnreachable
from wakeup.auth.google import GoogleLoginAdapter
from wakeup.auth.jwt import TokenKind
from wakeup.auth.store import UserStore

API = "/api/v1"
TOKENINFO_URL = "https://google.test/oauth2/v1/tokeninfo"


@pytest.fixture
def adapter(db, codec, google_client):
    return GoogleLoginAdapter(UserStore(db), codec, google_client, TOKENINFO_URL)


@pytest.mark.asyncio
async def test_first_login_provisions_federated_user(adapter, google_accounts, codec, db):
    google_accounts["good-token"] = {"email": "New.User@Gmail.com", "verified_email": True}

    result = await adapter.login("good-token")

    assert result.created is True
    assert result.user.email == "new.user@gmail.com"
    claims = codec.validate(result.token, kind=TokenKind.ACCESS)
    assert claims.user_id == result.user.id

    user = await UserStore(db).find_by_email("new.user@gmail.com")
    assert user.password_hash is None
    assert user.refresh_token == ""


@pytest.mark.asyncio
async def test_existing_user_is_reused(adapter, google_accounts, sessions):
    signup = await sessions.signup("person@gmail.com", "longenough1")
    google_accounts["good-token"] = {"email": "person@gmail.com", "verified_email": True}

    result = await adapter.login("good-token")

    assert result.created is False
    assert result.user.id == signup.user.id


@pytest.mark.asyncio
async def test_repeat_login_does_not_duplicate(adapter, google_accounts):
    google_accounts["good-token"] = {"email": "person@gmail.com"}

    first = await adapter.login("good-token")
    second = await adapter.login("good-token")

    assert first.user.id == second.user.id
    assert second.created is False


@pytest.mark.asyncio
async def test_rejected_provider_token(adapter):
    with pytest.raises(InvalidProviderToken):
        await adapter.login("unknown-token")


@pytest.mark.asyncio
async def test_provider_server_error(adapter):
    with pytest.raises(InvalidProviderToken):
        await adapter.login("server-error")


@pytest.mark.asyncio
async def test_provider_unreachable(adapter):
    with pytest.raises(ProviderUnreachable) as exc_info:
        await adapter.login("unreachable")
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {},
    {"email": ""},
    {"email": 12},
    {"email": "person@gmail.com", "verified_email": False},
])
async def test_unusable_tokeninfo(adapter, google_accounts, body):
    google_accounts["odd-token"] = body
    with pytest.raises(InvalidProviderToken):
        await adapter.login("odd-token")


@pytest.mark.asyncio
async def test_timeout_is_unreachable(db, codec):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        adapter = GoogleLoginAdapter(UserStore(db), codec, client, TOKENINFO_URL)
        with pytest.raises(ProviderUnreachable):
            await adapter.login("any")


@pytest.mark.asyncio
async def test_google_endpoint(client, google_accounts, codec):
    google_accounts["good-token"] = {"email": "web@gmail.com", "verified_email": True}

    response = await client.get(f"{API}/auth/google", headers={"Authorization": "Bearer good-token"})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["message"] == "Authentication successful"
    assert codec.validate(body["token"]).email == "web@gmail.com"
    assert "refreshToken" not in body

    me = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.json()["user"]["email"] == "web@gmail.com"


@pytest.mark.asyncio
async def test_google_endpoint_failures(client):
    missing = await client.get(f"{API}/auth/google")
    assert missing.status_code == 401
    assert missing.json()["message"] == "Authorization header missing"

    invalid = await client.get(f"{API}/auth/google", headers={"Authorization": "Bearer unknown-token"})
    assert invalid.status_code == 401
    assert invalid.json() == {"status": "error", "message": "Invalid Google access token"}

    down = await client.get(f"{API}/auth/google", headers={"Authorization": "Bearer unreachable"})
    assert down.status_code == 502


@pytest.mark.asyncio
async def test_provisioning_race_reuses_existing_row(adapter, google_accounts, engine, monkeypatch):
    """Another request creates the user between our lookup and our insert."""
    google_accounts["good-token"] = {"email": "racer@gmail.com", "verified_email": True}
    find_by_email = adapter.store.find_by_email
    calls = []

    async def find_after_concurrent_insert(email):
        calls.append(email)
        if len(calls) == 1:
            async with async_sessionmaker(engine, expire_on_commit=False)() as other:
                other_store = UserStore(other)
                await other_store.save(await other_store.create(email))
            return None
        return await find_by_email(email)

    monkeypatch.setattr(adapter.store, "find_by_email", find_after_concurrent_insert)

    result = await adapter.login("good-token")

    assert result.created is False
    assert result.user.email == "racer@gmail.com"
    assert calls == ["racer@gmail.com", "racer@gmail.com"]


@pytest.mark.asyncio
async def test_provider_token_stays_out_of_logs(client, google_accounts, caplog):
    secret_token = "ya29.SECRET-provider-token"
    google_accounts[secret_token] = {"email": "quiet@gmail.com", "verified_email": True}

    with caplog.at_level("DEBUG"):
        response = await client.get(
            f"{API}/auth/google", headers={"Authorization": f"Bearer {secret_token}"}
        )
        failed = await client.get(
            f"{API}/auth/google", headers={"Authorization": "Bearer ya29.SECRET-unknown"}
        )

    assert response.status_code == 200
    assert failed.status_code == 401
    for record in caplog.records:
        assert "SECRET" not in record.getMessage()


@pytest.mark.asyncio
async def test_tokeninfo_request_has_no_query_string(db, codec):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"email": "form@gmail.com"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        adapter = GoogleLoginAdapter(UserStore(db), codec, client, TOKENINFO_URL)
        assert await adapter.fetch_email("form-token") == "form@gmail.com"

    assert seen[0].method == "POST"
    assert seen[0].url.query == b""
    assert seen[0].content == b"access_token=form-token"
