from __future__ import annotations

import time
from typing import Optional, Tuple, TYPE_CHECKING

import httpx

from ..errors import RefreshError
from ..models import Credential

if TYPE_CHECKING:
    from ..config import Settings

# Refresh this long before the token actually expires
EXPIRY_BUFFER_MS = 5 * 60 * 1000

TOKEN_REQUEST_HEADERS = {
    "User-Agent": "Go-http-client/1.1",
    "Accept-Encoding": "gzip",
}


def _now_ms() -> int:
    return int(time.time() * 1000)


def is_token_expired(credential: Credential, now_ms: Optional[int] = None) -> bool:
    if not credential.timestamp or not credential.expires_in:
        return True
    if now_ms is None:
        now_ms = _now_ms()
    expires_at = credential.timestamp + credential.expires_in * 1000
    return now_ms >= expires_at - EXPIRY_BUFFER_MS


def _error_message(response: httpx.Response) -> Tuple[str, str]:
    try:
        error_data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}", ""
    if not isinstance(error_data, dict):
        return f"HTTP {response.status_code}", ""
    error_code = str(error_data.get("error", "") or "")
    error_msg = error_data.get("error_description") or error_code or f"HTTP {response.status_code}"
    return str(error_msg), error_code


async def _post_token_request(
    client: httpx.AsyncClient,
    credential: Credential,
    settings: "Settings",
) -> httpx.Response:
    return await client.post(
        settings.oauth_token_url,
        data={
            "client_id": settings.oauth_client_id,
            "client_secret": settings.oauth_client_secret,
            "grant_type": "refresh_token",
            "refresh_token": credential.refresh_token,
        },
        headers=TOKEN_REQUEST_HEADERS,
        timeout=settings.oauth_timeout_seconds,
    )


async def refresh_credential(
    credential: Credential,
    settings: "Settings",
    client: Optional[httpx.AsyncClient] = None,
) -> Credential:
    """
    Exchange the refresh token for a new access token.
    Mutates and returns ``credential``; leaves it untouched on failure.
    """
    try:
        if client is not None:
            response = await _post_token_request(client, credential, settings)
        else:
            async with httpx.AsyncClient(timeout=settings.oauth_timeout_seconds) as own_client:
                response = await _post_token_request(own_client, credential, settings)
    except httpx.TimeoutException as exc:
        raise RefreshError("Token refresh failed: request timed out") from exc
    except httpx.HTTPError as exc:
        raise RefreshError(f"Token refresh failed: {exc}") from exc

    if response.status_code != 200:
        error_msg, error_code = _error_message(response)
        raise RefreshError(f"Token refresh failed: {error_msg}", response.status_code, error_code)

    try:
        data = response.json()
        access_token = data["access_token"]
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("access_token missing")
        expires_in = int(data.get("expires_in", 3600))
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        raise RefreshError("Token refresh failed: malformed token response", response.status_code) from exc

    credential.access_token = access_token
    credential.expires_in = expires_in
    credential.timestamp = _now_ms()
    return credential
