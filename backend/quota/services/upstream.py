from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, TYPE_CHECKING

import httpx

from ..errors import UpstreamError
from ..models import Credential

if TYPE_CHECKING:
    from ..config import Settings

MAX_RETRIES = 3
RETRY_DELAY = 1.0

QuotaFetcher = Callable[[Credential], Awaitable[Mapping[str, Any]]]


async def fetch_quotas(
    credential: Credential,
    settings: "Settings",
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """
    Fetch per-model quota data for one credential.
    Returns {model_name: {"remaining": int, "resetTime"/"resetTimeRaw": str}}.
    """
    if not settings.quota_api_url:
        raise UpstreamError("QUOTA_API_URL is not configured")

    headers = {"Authorization": f"Bearer {credential.access_token}"}

    async def _request(http: httpx.AsyncClient) -> httpx.Response:
        for attempt in range(MAX_RETRIES):
            response = await http.get(settings.quota_api_url, headers=headers)

            # Handle rate limiting
            if response.status_code == 429:
                if attempt < MAX_RETRIES - 1:
                    try:
                        retry_after = float(response.headers.get("Retry-After", ""))
                    except ValueError:
                        retry_after = RETRY_DELAY * (attempt + 1)
                    await asyncio.sleep(retry_after)
                    continue
                raise UpstreamError("Rate limited")

            return response
        raise UpstreamError("Max retries exceeded")

    try:
        if client is not None:
            response = await _request(client)
        else:
            async with httpx.AsyncClient(timeout=settings.quota_fetch_timeout_seconds) as own_client:
                response = await _request(own_client)
    except httpx.HTTPError as exc:
        raise UpstreamError(f"Quota request failed: {exc}") from exc

    if response.status_code != 200:
        raise UpstreamError(f"Failed to get quotas: HTTP {response.status_code}")

    try:
        data = response.json()
    except ValueError as exc:
        raise UpstreamError("Quota response is not JSON") from exc

    if isinstance(data, dict) and isinstance(data.get("models"), dict):
        data = data["models"]
    if not isinstance(data, dict):
        raise UpstreamError("Quota response is not an object")
    return data


def make_http_fetcher(settings: "Settings") -> QuotaFetcher:
    async def _fetch(credential: Credential) -> Dict[str, Any]:
        return await fetch_quotas(credential, settings)

    return _fetch
