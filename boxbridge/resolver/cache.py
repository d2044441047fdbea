"""
Resolution cache keyed by ``kind:media_id:season:episode``.

Successful, complete results are kept for a fixed TTL. Concurrent misses for
one key share a single resolution through a per-key ``asyncio.Lock``. With
stale-while-revalidate enabled, an expired entry is still served during a grace
window while one background task refreshes it.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Protocol, Tuple

from redis.asyncio import Redis
from redis.exceptions import RedisError

try:  # pragma: no cover - optional dependency for test environments
    import fakeredis
except ModuleNotFoundError:  # pragma: no cover - runtime path without fakeredis
    fakeredis = None  # type: ignore[assignment]

from .errors import ResolverError
from .models import ResolutionOutcome, ResolutionRequest, ResolutionResult

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class Resolver(Protocol):
    def resolve(self, request: ResolutionRequest) -> Awaitable[ResolutionOutcome]:
        ...


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    value: ResolutionResult
    expires_at: float

    def is_stale(self, now: float) -> bool:
        return now >= self.expires_at


class CacheBackend(Protocol):
    name: str

    async def get(self, key: str) -> Optional[CacheEntry]:
        ...

    async def set(self, entry: CacheEntry, lifetime: float) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def size(self) -> int:
        ...

    async def close(self) -> None:
        ...


DEFAULT_MEMORY_MAX_SIZE = 1024


class MemoryCacheBackend:
    """Process-local dict that drops entries once ``lifetime`` has elapsed.

    Expired entries are purged on every write, mirroring Redis ``SETEX``, and
    the store never holds more than ``max_size`` entries.
    """

    name = "memory"

    def __init__(
        self,
        max_size: int | None = DEFAULT_MEMORY_MAX_SIZE,
        *,
        clock: Clock = time.time,
    ) -> None:
        self._max_size = max_size
        self._clock = clock
        self._store: Dict[str, Tuple[CacheEntry, float]] = {}

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, (_, retain_until) in self._store.items() if retain_until <= now]
        for key in expired:
            del self._store[key]

    async def get(self, key: str) -> Optional[CacheEntry]:
        stored = self._store.get(key)
        if stored is None:
            return None
        entry, retain_until = stored
        if retain_until <= self._clock():
            del self._store[key]
            return None
        return entry

    async def set(self, entry: CacheEntry, lifetime: float) -> None:
        now = self._clock()
        self._purge_expired(now)
        self._store[entry.key] = (entry, now + lifetime)
        if self._max_size is not None and len(self._store) > self._max_size:
            # Drop the entries closest to expiry first.
            by_expiry = sorted(self._store.values(), key=lambda item: item[0].expires_at)
            for stale, _ in by_expiry[: len(self._store) - self._max_size]:
                self._store.pop(stale.key, None)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def size(self) -> int:
        self._purge_expired(self._clock())
        return len(self._store)

    async def close(self) -> None:
        self._store.clear()


class RedisCacheBackend:
    """Stores entries as JSON with ``SETEX`` so Redis expires them on its own."""

    name = "redis"

    def __init__(self, connection: Redis, *, prefix: str = "boxbridge:") -> None:
        self._connection = connection
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, *, prefix: str = "boxbridge:") -> "RedisCacheBackend":
        """Instantiate a Redis connection, supporting fakeredis for tests."""

        if url.startswith("fakeredis://"):
            if fakeredis is None:  # pragma: no cover - safety branch
                raise ResolverError("fakeredis is required for fakeredis:// URLs")
            return cls(fakeredis.FakeAsyncRedis(), prefix=prefix)  # type: ignore[arg-type]
        return cls(Redis.from_url(url), prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Optional[CacheEntry]:
        try:
            raw = await self._connection.get(self._key(key))
        except RedisError as exc:
            logger.warning("Redis read failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            value = ResolutionResult.model_validate(data["value"])
            expires_at = float(data["expires_at"])
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("Discarding unreadable cache entry %s: %s", key, exc)
            return None
        return CacheEntry(key=key, value=value, expires_at=expires_at)

    async def set(self, entry: CacheEntry, lifetime: float) -> None:
        payload = json.dumps(
            {
                "expires_at": entry.expires_at,
                "value": entry.value.model_dump(mode="json", by_alias=True),
            }
        )
        try:
            await self._connection.setex(self._key(entry.key), max(1, int(lifetime)), payload)
        except RedisError as exc:
            logger.warning("Redis write failed for %s: %s", entry.key, exc)

    async def delete(self, key: str) -> None:
        try:
            await self._connection.delete(self._key(key))
        except RedisError as exc:
            logger.warning("Redis delete failed for %s: %s", key, exc)

    async def size(self) -> int:
        count = 0
        try:
            async for _ in self._connection.scan_iter(match=f"{self._prefix}*"):
                count += 1
        except RedisError as exc:
            logger.warning("Redis scan failed: %s", exc)
        return count

    async def close(self) -> None:
        await self._connection.aclose()


class ResolutionCache:
    def __init__(
        self,
        resolver: Resolver,
        backend: CacheBackend | None = None,
        *,
        ttl: float = 600.0,
        stale_while_revalidate: bool = False,
        stale_grace: float = 600.0,
        clock: Clock = time.time,
    ) -> None:
        self.resolver = resolver
        self.backend = backend or MemoryCacheBackend(clock=clock)
        self.ttl = ttl
        self.stale_while_revalidate = stale_while_revalidate
        self.stale_grace = stale_grace
        self._clock = clock
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}
        self._refreshing: Dict[str, asyncio.Task[None]] = {}

    @property
    def _lifetime(self) -> float:
        return self.ttl + (self.stale_grace if self.stale_while_revalidate else 0.0)

    async def _lookup(self, key: str) -> Optional[CacheEntry]:
        entry = await self.backend.get(key)
        if entry is None:
            return None
        now = self._clock()
        if not entry.is_stale(now):
            return entry
        if self.stale_while_revalidate and now < entry.expires_at + self.stale_grace:
            return entry
        await self.backend.delete(key)
        return None

    async def _resolve_and_store(self, request: ResolutionRequest) -> ResolutionOutcome:
        outcome = await self.resolver.resolve(request)
        result = outcome.result
        if outcome.ok and result is not None and not result.partial:
            entry = CacheEntry(
                key=request.cache_key,
                value=result,
                expires_at=self._clock() + self.ttl,
            )
            await self.backend.set(entry, self._lifetime)
        return outcome

    async def _run_exclusive(self, key: str, action: Callable[[], Awaitable[ResolutionOutcome]]) -> ResolutionOutcome:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                return await action()
        finally:
            self._waiters[key] -= 1
            if not self._waiters[key]:
                del self._waiters[key]
                self._locks.pop(key, None)

    async def get_or_resolve(self, request: ResolutionRequest) -> ResolutionOutcome:
        key = request.cache_key
        entry = await self._lookup(key)
        if entry is not None:
            if entry.is_stale(self._clock()):
                logger.debug("Serving stale cache entry %s", key)
                self._schedule_refresh(request)
            else:
                logger.debug("Cache hit %s", key)
            return ResolutionOutcome.success(entry.value)

        async def _fill() -> ResolutionOutcome:
            current = await self._lookup(key)
            if current is not None and not current.is_stale(self._clock()):
                return ResolutionOutcome.success(current.value)
            logger.debug("Cache miss %s", key)
            return await self._resolve_and_store(request)

        return await self._run_exclusive(key, _fill)

    def _schedule_refresh(self, request: ResolutionRequest) -> None:
        key = request.cache_key
        running = self._refreshing.get(key)
        if running is not None and not running.done():
            return
        task = asyncio.create_task(self._refresh(request))
        self._refreshing[key] = task
        task.add_done_callback(lambda done: self._forget_refresh(key, done))

    def _forget_refresh(self, key: str, task: asyncio.Task[None]) -> None:
        if self._refreshing.get(key) is task:
            del self._refreshing[key]
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background refresh of %s crashed", key, exc_info=task.exception())

    async def _refresh(self, request: ResolutionRequest) -> None:
        try:
            outcome = await self._run_exclusive(
                request.cache_key, lambda: self._resolve_and_store(request)
            )
        except ResolverError as exc:
            logger.warning("Background refresh of %s failed: %s", request.cache_key, exc)
            return
        if not outcome.ok:
            logger.warning("Background refresh of %s failed: %s", request.cache_key, outcome.error)

    async def wait_for_refreshes(self) -> None:
        """Block until every scheduled background refresh has finished."""

        pending = [task for task in self._refreshing.values() if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def size(self) -> int:
        return await self.backend.size()

    async def close(self) -> None:
        for task in list(self._refreshing.values()):
            task.cancel()
        await self.wait_for_refreshes()
        await self.backend.close()
