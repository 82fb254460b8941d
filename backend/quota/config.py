from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Tuple

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_DATA_FILE_PATH = PROJECT_ROOT / "backend" / "data" / "quotas.json"

DEFAULT_CORS_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"
DEFAULT_OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"

CACHE_TTL_SECONDS = 5 * 60
CLEANUP_TTL_SECONDS = 60 * 60
DISPLAY_UTC_OFFSET_HOURS = 8


def _parse_int(value: Optional[str], default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_float(value: Optional[str], default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_cors_origins(value: Optional[str]) -> Tuple[List[str], Optional[str]]:
    if not value:
        return [], DEFAULT_CORS_ORIGIN_REGEX

    raw = value.strip()
    if raw == "*":
        return [], ".*"

    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins, None


@dataclass(frozen=True)
class Settings:
    data_file_path: Path = DEFAULT_DATA_FILE_PATH

    cache_ttl_seconds: int = CACHE_TTL_SECONDS
    cleanup_ttl_seconds: int = CLEANUP_TTL_SECONDS
    display_utc_offset_hours: int = DISPLAY_UTC_OFFSET_HOURS

    oauth_token_url: str = DEFAULT_OAUTH_TOKEN_URL
    oauth_client_id: str = ""
    oauth_client_secret: str = ""
    oauth_timeout_seconds: float = 30.0

    quota_api_url: str = ""
    quota_fetch_timeout_seconds: float = 30.0

    cors_allow_origins: List[str] = field(default_factory=list)
    cors_allow_origin_regex: Optional[str] = DEFAULT_CORS_ORIGIN_REGEX

    @property
    def cache_ttl_ms(self) -> int:
        return self.cache_ttl_seconds * 1000

    @property
    def cleanup_ttl_ms(self) -> int:
        return self.cleanup_ttl_seconds * 1000

    @classmethod
    def from_env(cls) -> "Settings":
        data_file_path = Path(os.getenv("DATA_FILE_PATH", str(DEFAULT_DATA_FILE_PATH)))

        cache_ttl_seconds = _parse_int(os.getenv("QUOTA_CACHE_TTL_SECONDS"), CACHE_TTL_SECONDS)
        cleanup_ttl_seconds = _parse_int(os.getenv("QUOTA_CLEANUP_TTL_SECONDS"), CLEANUP_TTL_SECONDS)
        display_utc_offset_hours = _parse_int(
            os.getenv("QUOTA_DISPLAY_UTC_OFFSET_HOURS"), DISPLAY_UTC_OFFSET_HOURS
        )

        oauth_token_url = os.getenv("OAUTH_TOKEN_URL", DEFAULT_OAUTH_TOKEN_URL)
        oauth_client_id = os.getenv("OAUTH_CLIENT_ID", "")
        oauth_client_secret = os.getenv("OAUTH_CLIENT_SECRET", "")
        oauth_timeout_seconds = _parse_float(os.getenv("OAUTH_TIMEOUT_SECONDS"), 30.0)

        quota_api_url = os.getenv("QUOTA_API_URL", "")
        quota_fetch_timeout_seconds = _parse_float(os.getenv("QUOTA_FETCH_TIMEOUT_SECONDS"), 30.0)

        cors_allow_origins, cors_allow_origin_regex = _parse_cors_origins(os.getenv("CORS_ORIGINS"))

        return cls(
            data_file_path=data_file_path,
            cache_ttl_seconds=cache_ttl_seconds,
            cleanup_ttl_seconds=cleanup_ttl_seconds,
            display_utc_offset_hours=display_utc_offset_hours,
            oauth_token_url=oauth_token_url,
            oauth_client_id=oauth_client_id,
            oauth_client_secret=oauth_client_secret,
            oauth_timeout_seconds=oauth_timeout_seconds,
            quota_api_url=quota_api_url,
            quota_fetch_timeout_seconds=quota_fetch_timeout_seconds,
            cors_allow_origins=cors_allow_origins,
            cors_allow_origin_regex=cors_allow_origin_regex,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
