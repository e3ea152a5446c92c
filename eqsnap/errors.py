"""Typed failures surfaced by the snapshot engine.

Only ``rate_limited`` is retryable. ``malformed_field`` never leaves the
normalizer; it exists so dropped rows can be logged with a stable kind.
"""
from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    NO_DATA = "no_data"
    INSUFFICIENT_DATA = "insufficient_data"
    MALFORMED_FIELD = "malformed_field"


class SnapshotError(Exception):
    retryable = False

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        provider: str | None = None,
        detail: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.provider = provider
        self.detail = detail

    def to_payload(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "provider": self.provider,
            "detail": self.detail,
        }


class ProviderError(SnapshotError):
    """Failure attributable to an upstream market-data provider."""


class RateLimitedError(ProviderError):
    retryable = True

    def __init__(self, provider: str, detail: str | None = None, status_code: int | None = None):
        super().__init__(
            f"{provider} rate limited: {detail or 'Too Many Requests'}",
            ErrorKind.RATE_LIMITED,
            provider,
            detail,
        )
        self.status_code = status_code


class NoDataError(ProviderError):
    def __init__(self, provider: str, detail: str | None = None):
        super().__init__(
            f"No data from {provider}: {detail or 'empty response'}",
            ErrorKind.NO_DATA,
            provider,
            detail,
        )


class InsufficientDataError(SnapshotError):
    def __init__(self, detail: str, provider: str | None = None):
        super().__init__(
            f"Insufficient data: {detail}",
            ErrorKind.INSUFFICIENT_DATA,
            provider,
            detail,
        )
