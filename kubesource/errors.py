"""Error taxonomy for kubesource.

ConfigurationError  -- bad adapter setup, raised at construction time only.
ScopeError          -- malformed scope string.
QueryParseError     -- malformed search filter.
NotFoundError       -- upstream reports no such resource.
UpstreamError       -- any other upstream failure.
ExtractionError     -- a redaction, relationship or health callback failed.
"""

from __future__ import annotations


class KubeSourceError(Exception):
    """Base class for every error raised by kubesource."""


class ConfigurationError(KubeSourceError):
    """Raised when a ResourceAdapter is constructed with an invalid definition."""


class ScopeError(KubeSourceError):
    """Raised when a scope string cannot be formatted or parsed."""

    def __init__(self, scope: str, reason: str) -> None:
        super().__init__(f"invalid scope {scope!r}: {reason}")
        self.scope = scope
        self.reason = reason


class QueryParseError(KubeSourceError):
    """Raised when a search filter is not a valid ListOptions JSON object."""


class NotFoundError(KubeSourceError):
    """The upstream API reported that the requested resource does not exist.

    An expected outcome of ``get``; callers should not log it as a failure.
    """

    def __init__(self, kind: str, scope: str, name: str, message: str) -> None:
        super().__init__(message or f"{kind} {name!r} not found in scope {scope!r}")
        self.kind = kind
        self.scope = scope
        self.name = name
        self.message = message


class UpstreamError(KubeSourceError):
    """Any upstream failure other than not-found, message kept verbatim."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class UpstreamTimeoutError(UpstreamError):
    """An upstream call did not complete within the per-call deadline."""

    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(f"{operation} timed out after {timeout}s")
        self.operation = operation
        self.timeout = timeout


class ExtractionError(KubeSourceError):
    """A conversion callback failed; the affected item (and batch) is aborted."""

    def __init__(self, kind: str, name: str, stage: str, cause: Exception) -> None:
        super().__init__(f"{stage} failed for {kind} {name!r}: {cause}")
        self.kind = kind
        self.name = name
        self.stage = stage
        self.cause = cause
