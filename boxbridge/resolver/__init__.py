"""
Resolver core for boxbridge.

This package turns a TMDB id into a catalog subject and its download
descriptor: title lookup, catalog search, fuzzy subject matching, detail-path
extraction, retrying HTTP fetches and result caching.
"""

from .backoff import BackoffExecutor, BackoffPolicy
from .cache import MemoryCacheBackend, RedisCacheBackend, ResolutionCache
from .config import ResolverConfig
from .errors import (
    InvalidRequestError,
    NotFoundError,
    ResolverError,
    UpstreamStatusError,
    UpstreamUnavailableError,
)
from .models import ResolutionOutcome, ResolutionRequest, ResolutionResult
from .service import MetadataResolver, ResolutionService, build_service

__all__ = [
    "BackoffExecutor",
    "BackoffPolicy",
    "InvalidRequestError",
    "MemoryCacheBackend",
    "MetadataResolver",
    "NotFoundError",
    "RedisCacheBackend",
    "ResolutionCache",
    "ResolutionOutcome",
    "ResolutionRequest",
    "ResolutionResult",
    "ResolutionService",
    "ResolverConfig",
    "ResolverError",
    "UpstreamStatusError",
    "UpstreamUnavailableError",
    "build_service",
]
