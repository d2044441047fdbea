"""Error hierarchy raised by the resolution pipeline."""
from __future__ import annotations


class ResolverError(RuntimeError):
    """Base class for every failure surfaced by the resolver."""


class InvalidRequestError(ResolverError):
    """Raised when a media identifier or episode selector is malformed."""


class NotFoundError(ResolverError):
    """Raised when the upstreams answered but no catalog subject matched."""


class UpstreamUnavailableError(ResolverError):
    """Raised when an upstream could not be reached within the retry budget."""

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status: int | None = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status = status
        self.attempts = attempts


class UpstreamStatusError(UpstreamUnavailableError):
    """Raised immediately for a non-retryable upstream HTTP status."""
