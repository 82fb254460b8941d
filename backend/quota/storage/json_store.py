from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from filelock import FileLock

from ..config import CLEANUP_TTL_SECONDS
from ..errors import LoadError, SaveError

logger = logging.getLogger(__name__)

ErrorHook = Callable[[str, Exception], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


def fresh_store(now_ms: int, ttl_ms: int) -> Dict[str, Any]:
    return {"meta": {"lastCleanup": now_ms, "ttl": ttl_ms}, "quotas": {}}


def _is_valid_snapshot(snapshot: Any) -> bool:
    if not isinstance(snapshot, dict):
        return False
    last_updated = snapshot.get("lastUpdated")
    if isinstance(last_updated, bool) or not isinstance(last_updated, int):
        return False
    models = snapshot.get("models")
    return isinstance(models, dict) and all(isinstance(m, dict) for m in models.values())


def _normalize_data(data: Dict[str, Any], now_ms: int, ttl_ms: int) -> Dict[str, Any]:
    meta = data.get("meta")
    if not isinstance(meta, dict):
        data["meta"] = {"lastCleanup": now_ms, "ttl": ttl_ms}

    quotas = data.get("quotas")
    if not isinstance(quotas, dict):
        data["quotas"] = {}
        return data

    for key in [k for k, v in quotas.items() if not _is_valid_snapshot(v)]:
        logger.warning(f"Dropping malformed quota snapshot for key {key!r}")
        del quotas[key]
    return data


class JSONStore:
    """Single JSON document holding the quota cache state."""

    def __init__(
        self,
        file_path: Path,
        ttl_ms: int = CLEANUP_TTL_SECONDS * 1000,
        clock: Callable[[], int] = _now_ms,
        error_hook: Optional[ErrorHook] = None,
    ):
        self.file_path = Path(file_path)
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._error_hook = error_hook
        lock_path = self.file_path.with_suffix(self.file_path.suffix + ".lock")
        self._file_lock = FileLock(str(lock_path))
        self._thread_lock = threading.RLock()

    def load(self) -> Dict[str, Any]:
        """Read the store, falling back to an empty one on any failure."""
        if not self.file_path.exists():
            logger.info(f"No quota store at {self.file_path}, starting empty")
            return fresh_store(self._clock(), self.ttl_ms)
        try:
            return self.read()
        except LoadError as e:
            logger.error(f"Failed to load quotas: {e}")
            self._notify("load_failed", e)
            return fresh_store(self._clock(), self.ttl_ms)

    def save(self, data: Dict[str, Any]) -> bool:
        """Write the store. Failures are logged and reported as False."""
        try:
            self.write(data)
            return True
        except SaveError as e:
            logger.error(f"Failed to save quotas: {e}")
            self._notify("save_failed", e)
            return False

    def read(self) -> Dict[str, Any]:
        with self._thread_lock:
            if not self.file_path.exists():
                raise LoadError(f"{self.file_path} does not exist")
            try:
                with self._file_lock:
                    data = self._read_no_lock()
            except OSError as exc:
                raise LoadError(f"Cannot read {self.file_path}: {exc}") from exc
            return _normalize_data(data, self._clock(), self.ttl_ms)

    def write(self, data: Dict[str, Any]) -> None:
        with self._thread_lock:
            try:
                self._ensure_parent_dir()
                with self._file_lock:
                    self._atomic_write_locked(data)
            except (OSError, TypeError, ValueError) as exc:
                raise SaveError(f"Cannot write {self.file_path}: {exc}") from exc

    def _notify(self, event: str, exc: Exception) -> None:
        if self._error_hook is None:
            return
        try:
            self._error_hook(event, exc)
        except Exception as hook_exc:
            logger.error(f"Error hook failed for {event}: {hook_exc}")

    def _ensure_parent_dir(self) -> None:
        self.file_path.parent.mkdir(parents=True, exist_ok=True)

    def _read_no_lock(self) -> Dict[str, Any]:
        try:
            with self.file_path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise LoadError(f"Invalid JSON in {self.file_path}") from exc

        if not isinstance(data, dict):
            raise LoadError(f"{self.file_path} must contain a JSON object at the root")
        return data

    def _atomic_write_locked(self, data: Dict[str, Any]) -> None:
        payload = json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True) + "\n"
        tmp_dir = str(self.file_path.parent)
        fd, tmp_path_str = tempfile.mkstemp(
            prefix=self.file_path.name + ".",
            suffix=".tmp",
            dir=tmp_dir,
        )
        tmp_path = Path(tmp_path_str)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.file_path)
        finally:
            try:
                if tmp_path.exists():
                    tmp_path.unlink()
            except OSError:
                pass
