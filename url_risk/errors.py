"""Error taxonomy.

Source-level errors are caught at the adapter boundary and downgraded to an
Unknown verdict plus an error string. Store-level errors surface from the
key-value layer; QuotaFailure means "do not persist this value".
"""

from __future__ import annotations


class SourceError(Exception):
    """A source could not produce a verdict."""


class NetworkFailure(SourceError):
    """Timeout, DNS failure or non-2xx response."""


class AuthFailure(SourceError):
    """Missing or rejected API key."""


class ParseFailure(SourceError):
    """Malformed response body."""


class CancelledFailure(SourceError):
    """Cooperative cancellation observed before the check started."""

    def __init__(self, message: str = "Analysis cancelled") -> None:
        super().__init__(message)


class StoreError(Exception):
    """Key-value store failure."""


class QuotaFailure(StoreError):
    """A value exceeds the store's size limit."""
