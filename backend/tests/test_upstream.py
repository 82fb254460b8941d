import httpx
import pytest

from backend.quota.config import Settings
from backend.quota.errors import UpstreamError
from backend.quota.models import Credential
from backend.quota.services import upstream
from backend.quota.services.upstream import fetch_quotas

SETTINGS = Settings(quota_api_url="https://quota.example.test/v1/quotas")
CREDENTIAL = Credential(access_token="access-1", refresh_token="refresh-1")


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetch_sends_bearer_token_and_unwraps_models():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["authorization"]
        return httpx.Response(200, json={"models": {"modelA": {"remaining": 10, "resetTime": "x"}}})

    async with _client(handler) as client:
        data = await fetch_quotas(CREDENTIAL, SETTINGS, client=client)

    assert seen["auth"] == "Bearer access-1"
    assert data == {"modelA": {"remaining": 10, "resetTime": "x"}}


@pytest.mark.asyncio
async def test_fetch_accepts_bare_mapping():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"modelA": {"remaining": 1}})

    async with _client(handler) as client:
        assert await fetch_quotas(CREDENTIAL, SETTINGS, client=client) == {"modelA": {"remaining": 1}}


@pytest.mark.asyncio
async def test_fetch_http_error_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "unauthorized"})

    async with _client(handler) as client:
        with pytest.raises(UpstreamError, match="HTTP 401"):
            await fetch_quotas(CREDENTIAL, SETTINGS, client=client)


@pytest.mark.asyncio
async def test_fetch_retries_rate_limit(monkeypatch):
    attempts = []

    async def no_sleep(_seconds):
        return None

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        if len(attempts) < 2:
            return httpx.Response(429, headers={"Retry-After": "1"})
        return httpx.Response(200, json={"modelA": {"remaining": 2}})

    monkeypatch.setattr(upstream.asyncio, "sleep", no_sleep)
    async with _client(handler) as client:
        data = await fetch_quotas(CREDENTIAL, SETTINGS, client=client)

    assert len(attempts) == 2
    assert data == {"modelA": {"remaining": 2}}


@pytest.mark.asyncio
async def test_fetch_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(UpstreamError, match="refused"):
            await fetch_quotas(CREDENTIAL, SETTINGS, client=client)


@pytest.mark.asyncio
async def test_fetch_requires_configured_url():
    with pytest.raises(UpstreamError, match="QUOTA_API_URL"):
        await fetch_quotas(CREDENTIAL, Settings())
