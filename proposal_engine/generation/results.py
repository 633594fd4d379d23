"""
Tagged results returned at the generation-service boundary.

A section's text is authoritative only when it came from a successful
result. Failures carry an explicit ErrorKind; the sentinel text stored on
the section is for display and for older snapshots that predate the tag.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    TRANSPORT = "transport"
    RATE_LIMITED = "rate_limited"
    NO_RESPONSE = "no_response"
    PROVIDER_OUTAGE = "provider_outage"
    PROVIDER_ERROR = "provider_error"


SENTINEL_PREFIXES: dict[ErrorKind, str] = {
    ErrorKind.TRANSPORT: "Connection error",
    ErrorKind.RATE_LIMITED: "Rate limit reached",
    ErrorKind.NO_RESPONSE: "No response",
    ErrorKind.PROVIDER_OUTAGE: "The AI service is temporarily unavailable",
    ErrorKind.PROVIDER_ERROR: "Error",
}

# Prefixes written by earlier clients, checked in this order.
_LEGACY_PREFIXES: tuple[tuple[str, ErrorKind], ...] = (
    ("Connection", ErrorKind.TRANSPORT),
    ("Request failed", ErrorKind.TRANSPORT),
    ("Rate limit", ErrorKind.RATE_LIMITED),
    ("No response", ErrorKind.NO_RESPONSE),
    ("The AI service", ErrorKind.PROVIDER_OUTAGE),
    ("Error", ErrorKind.PROVIDER_ERROR),
)


class GenerationServiceError(Exception):
    """Base for failures a generation service may raise instead of returning."""

    kind: ErrorKind = ErrorKind.PROVIDER_ERROR

    def __init__(self, message: str, kind: ErrorKind | None = None):
        super().__init__(message)
        if kind is not None:
            self.kind = kind


class TransportError(GenerationServiceError):
    """The service was unreachable or timed out."""

    kind = ErrorKind.TRANSPORT


class ProviderError(GenerationServiceError):
    """The service answered with an error or a semantically empty response."""

    kind = ErrorKind.PROVIDER_ERROR


def sentinel_text(kind: ErrorKind, message: str | None = None) -> str:
    prefix = SENTINEL_PREFIXES[kind]
    detail = (message or "").strip()
    return f"{prefix}: {detail}" if detail else f"{prefix}."


def classify_legacy_text(text: str | None) -> Optional[ErrorKind]:
    """Recover the error tag from untagged sentinel text, if it is one."""
    if not isinstance(text, str):
        return None
    stripped = text.lstrip()
    for prefix, kind in _LEGACY_PREFIXES:
        if stripped.startswith(prefix):
            return kind
    return None


@dataclass(frozen=True)
class GenerationResult:
    text: str
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def success(cls, text: str) -> "GenerationResult":
        stripped = (text or "").strip()
        if not stripped:
            return cls.failure(ErrorKind.NO_RESPONSE, "the service returned no text")
        return cls(text=stripped)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str | None = None) -> "GenerationResult":
        return cls(text=sentinel_text(kind, message), error_kind=kind, message=message)

    @classmethod
    def from_exception(cls, exc: Exception) -> "GenerationResult":
        if isinstance(exc, GenerationServiceError):
            return cls.failure(exc.kind, str(exc))
        return cls.failure(ErrorKind.PROVIDER_ERROR, f"{type(exc).__name__}: {exc}")
