"""Error taxonomy for the Mage AI synchronization layer.

Every failure surfaced by the reconcilers is one of four kinds:

- ValidationError: caught before any network call (bad enumerated literal,
  inconsistent block graph, malformed manifest)
- TransportError: the HTTP round-trip itself failed
- DecodeError: response bytes matched neither the success nor the error envelope
- APIError: well-formed payload whose identifier is empty, i.e. a business failure
  reported by the Mage AI server

None of them are retried. Each carries the operation, resource kind and identifiers
involved so callers can build an operator-facing diagnostic.
"""

from typing import Dict
from typing import Optional

__all__ = [
    "MageAISyncError",
    "ValidationError",
    "TransportError",
    "DecodeError",
    "APIError",
]


class MageAISyncError(Exception):
    """Base class for every error raised by mageai_sync."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        resource_kind: Optional[str] = None,
        identifiers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.resource_kind = resource_kind
        self.identifiers = dict(identifiers or {})

    def annotate(
        self,
        operation: str,
        resource_kind: str,
        identifiers: Optional[Dict[str, str]] = None,
    ) -> "MageAISyncError":
        """Attach call context, keeping anything already set closer to the failure."""
        self.operation = self.operation or operation
        self.resource_kind = self.resource_kind or resource_kind
        for key, value in (identifiers or {}).items():
            self.identifiers.setdefault(key, value)
        return self

    def context(self) -> str:
        parts = []
        if self.operation and self.resource_kind:
            parts.append(f"{self.operation} {self.resource_kind}")
        if self.identifiers:
            parts.append(", ".join(f"{k}={v}" for k, v in self.identifiers.items()))
        return " ".join(parts)

    def __str__(self) -> str:
        context = self.context()
        if context:
            return f"{context}: {self.message}"
        return self.message


class ValidationError(MageAISyncError):
    """Client-side pre-flight failure; no request was sent."""


class TransportError(MageAISyncError):
    """Network failure, timeout or non-200 status from the Mage AI server."""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code


class DecodeError(MageAISyncError):
    """Response body did not parse as either the success or the error envelope."""

    def __init__(self, message: str, reason: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.reason = reason or message


class APIError(MageAISyncError):
    """The server answered with an error envelope instead of a resource."""

    def __init__(self, code: int, exception: str, message: str = "", **kwargs):
        super().__init__(f"{exception or 'unknown error'}, Status code: {code}", **kwargs)
        self.code = code
        self.exception = exception
        self.api_message = message
