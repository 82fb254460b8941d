from __future__ import annotations


class QuotaError(Exception):
    """Base class for quota cache failures."""


class LoadError(QuotaError):
    """Persisted state is missing, unreadable or malformed."""


class SaveError(QuotaError):
    """Persisted state could not be written."""


class RefreshError(QuotaError):
    """The OAuth token exchange failed."""

    def __init__(self, message: str, status_code: int = 0, error_code: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class UpstreamError(QuotaError):
    """The quota fetch failed or returned unusable data."""


class FetchError(QuotaError):
    """No cached snapshot exists and revalidation failed."""
