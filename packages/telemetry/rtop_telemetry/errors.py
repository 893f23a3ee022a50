"""Fetch failure taxonomy.

Failures are returned from ``SnapshotFetcher.fetch`` as values; they subclass
``Exception`` so callers can still raise them where that reads better.
"""

from __future__ import annotations


class FetchError(Exception):
    kind = "fetch_error"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.reason!r})"


class ProviderUnavailable(FetchError):
    """Provider gave no payload. Transient and expected."""

    kind = "provider_unavailable"


class MalformedPayload(FetchError):
    """Payload was present but does not decode to a JSON object."""

    kind = "malformed_payload"
