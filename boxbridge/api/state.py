"""Shared state container for the boxbridge API."""
from __future__ import annotations

from dataclasses import dataclass

import httpx

from ..resolver import MemoryCacheBackend, RedisCacheBackend, ResolutionService, build_service
from ..resolver.cache import CacheBackend
from .settings import BoxbridgeSettings


@dataclass(slots=True)
class AppState:
    """Encapsulates the HTTP client and resolution service shared across routers."""

    settings: BoxbridgeSettings
    http_client: httpx.AsyncClient
    cache_backend: CacheBackend
    service: ResolutionService

    def __init__(
        self,
        settings: BoxbridgeSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.http_client = httpx.AsyncClient(transport=transport, follow_redirects=True)
        if settings.cache_backend == "redis":
            self.cache_backend = RedisCacheBackend.from_url(settings.redis_url)
        else:
            self.cache_backend = MemoryCacheBackend(max_size=settings.cache_max_size)
        self.service = build_service(
            self.http_client,
            settings.resolver_config(),
            cache_backend=self.cache_backend,
        )

    async def close(self) -> None:
        """Cancel background refreshes and release network resources."""

        await self.service.cache.close()
        await self.http_client.aclose()
