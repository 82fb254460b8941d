from __future__ import annotations

import asyncio
import copy
import logging
import threading
import time
import weakref
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from ..config import Settings
from ..errors import FetchError, QuotaError, RefreshError, UpstreamError
from ..models import Credential, ModelQuota, QuotaResponse
from ..storage.json_store import ErrorHook, JSONStore
from . import oauth
from .timefmt import localize
from .upstream import QuotaFetcher

logger = logging.getLogger(__name__)

Refresher = Callable[[Credential], Awaitable[Credential]]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _remaining(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def build_snapshot(api_data: Any, now_ms: int) -> Dict[str, Any]:
    """Convert a quota fetch result into the stored snapshot shape."""
    if not isinstance(api_data, Mapping) or not api_data:
        raise UpstreamError("Invalid API response")

    models: Dict[str, Dict[str, Any]] = {}
    for model_name, model_info in api_data.items():
        if not isinstance(model_info, Mapping):
            raise UpstreamError(f"Invalid quota entry for {model_name!r}")
        models[str(model_name)] = {
            "r": model_info.get("remaining"),
            "t": model_info.get("resetTimeRaw") or model_info.get("resetTime"),
        }
    return {"lastUpdated": now_ms, "models": models}


class QuotaManager:
    """
    Per-credential quota cache.

    Snapshots younger than the cache TTL are served as-is; older ones are
    revalidated upstream, and the last known snapshot is served whenever
    revalidation fails.
    """

    def __init__(
        self,
        store: JSONStore,
        settings: Settings,
        fetcher: QuotaFetcher,
        refresher: Optional[Refresher] = None,
        clock: Callable[[], int] = _now_ms,
        error_hook: Optional[ErrorHook] = None,
    ):
        self.store = store
        self.settings = settings
        self._fetcher = fetcher
        self._refresher = refresher or (lambda cred: oauth.refresh_credential(cred, settings))
        self._clock = clock
        self._error_hook = error_hook
        self._lock = threading.RLock()
        self._key_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self._data = store.load()

    @property
    def cache_ttl_ms(self) -> int:
        return self.settings.cache_ttl_ms

    @property
    def cleanup_ttl_ms(self) -> int:
        return self.settings.cleanup_ttl_ms

    def snapshot(self, credential_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            existing = self._data["quotas"].get(credential_id)
            return copy.deepcopy(existing) if existing is not None else None

    def meta(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._data["meta"])

    def format_response(self, snapshot: Mapping[str, Any]) -> QuotaResponse:
        models = {}
        for model_name, model_info in snapshot.get("models", {}).items():
            raw = model_info.get("t")
            models[model_name] = ModelQuota(
                remaining=_remaining(model_info.get("r")),
                reset_time=localize(raw, self.settings.display_utc_offset_hours),
                reset_time_raw=raw if raw is None or isinstance(raw, str) else str(raw),
            )
        return QuotaResponse(last_updated=snapshot["lastUpdated"], models=models)

    async def get_quotas(self, credential_id: str, credential: Credential) -> QuotaResponse:
        now = self._clock()
        existing = self.snapshot(credential_id)
        if self._is_fresh(existing, now):
            return self.format_response(existing)

        async with self._key_lock(credential_id):
            # Another caller may have revalidated while we waited
            existing = self.snapshot(credential_id)
            if self._is_fresh(existing, now):
                return self.format_response(existing)

            try:
                snapshot = await self._revalidate(credential, now)
            except QuotaError as e:
                logger.error(f"Failed to fetch quotas: {e}")
                self._notify("revalidate_failed", e)
                if existing is not None:
                    logger.warning("Serving stale quota snapshot after revalidation failure")
                    return self.format_response(existing)
                raise FetchError(str(e)) from e

            with self._lock:
                self._data["quotas"][credential_id] = snapshot
                self.store.save(self._data)
            return self.format_response(snapshot)

    def cleanup(self, now_ms: Optional[int] = None) -> int:
        """Drop snapshots older than the cleanup TTL. Returns the number removed."""
        now = self._clock() if now_ms is None else now_ms
        cutoff = now - self.cleanup_ttl_ms
        with self._lock:
            quotas = self._data["quotas"]
            expired = [key for key, data in quotas.items() if data["lastUpdated"] < cutoff]
            for key in expired:
                del quotas[key]

            if expired:
                self._data["meta"]["lastCleanup"] = now
                self.store.save(self._data)
        return len(expired)

    def close(self) -> None:
        with self._lock:
            self.store.save(self._data)

    def _is_fresh(self, snapshot: Optional[Dict[str, Any]], now_ms: int) -> bool:
        if snapshot is None:
            return False
        return now_ms - snapshot["lastUpdated"] < self.cache_ttl_ms

    def _key_lock(self, credential_id: str) -> asyncio.Lock:
        with self._lock:
            lock = self._key_locks.get(credential_id)
            if lock is None:
                lock = asyncio.Lock()
                self._key_locks[credential_id] = lock
            return lock

    async def _revalidate(self, credential: Credential, now_ms: int) -> Dict[str, Any]:
        if not credential.access_token or oauth.is_token_expired(credential, now_ms):
            try:
                await self._refresher(credential)
            except QuotaError:
                raise
            except Exception as exc:
                raise RefreshError(f"Token refresh failed: {exc}") from exc

        try:
            api_data = await asyncio.wait_for(
                self._fetcher(credential),
                timeout=self.settings.quota_fetch_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise UpstreamError("Quota fetch timed out") from exc
        except QuotaError:
            raise
        except Exception as exc:
            raise UpstreamError(f"Quota fetch failed: {exc}") from exc

        return build_snapshot(api_data, now_ms)

    def _notify(self, event: str, exc: Exception) -> None:
        if self._error_hook is None:
            return
        try:
            self._error_hook(event, exc)
        except Exception as hook_exc:
            logger.error(f"Error hook failed for {event}: {hook_exc}")
