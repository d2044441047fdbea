"""Tests for the resolution cache: TTL, single flight, stale-while-revalidate, Redis."""
from __future__ import annotations

import asyncio

import httpx
import pytest

from boxbridge.resolver import (
    MemoryCacheBackend,
    RedisCacheBackend,
    ResolutionCache,
    ResolutionOutcome,
    ResolutionRequest,
    ResolutionResult,
    ResolverConfig,
    UpstreamUnavailableError,
    build_service,
)
from boxbridge.resolver.cache import DEFAULT_MEMORY_MAX_SIZE, CacheEntry

from .conftest import MATRIX_SUBJECT_ID, FakeUpstream

MOVIE = ResolutionRequest(media_id="603")


class FakeClock:
    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingResolver:
    """Returns a fresh result per call; ``gate`` holds resolutions until set."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.gate: asyncio.Event | None = None
        self.fail = False
        self.partial = False

    async def resolve(self, request: ResolutionRequest) -> ResolutionOutcome:
        self.calls.append(request.cache_key)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            return ResolutionOutcome.upstream_error(UpstreamUnavailableError("catalog down"))
        return ResolutionOutcome.success(
            ResolutionResult(
                media_type=request.kind,
                title="The Matrix",
                year="1999",
                subject_id=MATRIX_SUBJECT_ID,
                used_title="The Matrix",
                season=request.season,
                episode=request.episode,
                details_url=f"https://moviebox.ph/detail?id={MATRIX_SUBJECT_ID}",
                has_resource=True,
                download_data={"version": len(self.calls)},
                partial=self.partial,
                missing=["detailPath"] if self.partial else [],
            )
        )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def resolver() -> CountingResolver:
    return CountingResolver()


@pytest.mark.asyncio
async def test_live_entry_is_served_without_resolving(resolver: CountingResolver, clock: FakeClock) -> None:
    cache = ResolutionCache(resolver, ttl=600, clock=clock)

    first = await cache.get_or_resolve(MOVIE)
    clock.advance(599)
    second = await cache.get_or_resolve(MOVIE)

    assert resolver.calls == ["movie:603:0:0"]
    assert second.result.model_dump_json() == first.result.model_dump_json()


@pytest.mark.asyncio
async def test_repeated_calls_skip_the_upstream(upstream: FakeUpstream, resolver_config: ResolverConfig) -> None:
    service = build_service(httpx.AsyncClient(transport=upstream.transport), resolver_config)

    first = await service.resolve_movie("603")
    calls_after_first = len(upstream.requests)
    second = await service.resolve_movie("603")

    assert len(upstream.requests) == calls_after_first
    assert second.model_dump_json(by_alias=True) == first.model_dump_json(by_alias=True)


@pytest.mark.asyncio
async def test_episodes_get_independent_entries(resolver: CountingResolver) -> None:
    cache = ResolutionCache(resolver)

    await cache.get_or_resolve(ResolutionRequest(media_id="1399", is_series=True, season=2, episode=5))
    await cache.get_or_resolve(ResolutionRequest(media_id="1399", is_series=True, season=2, episode=6))
    await cache.get_or_resolve(ResolutionRequest(media_id="1399", is_series=True, season=2, episode=5))

    assert resolver.calls == ["tv:1399:2:5", "tv:1399:2:6"]
    assert await cache.size() == 2


@pytest.mark.asyncio
async def test_expired_entry_is_resolved_again(resolver: CountingResolver, clock: FakeClock) -> None:
    cache = ResolutionCache(resolver, ttl=600, clock=clock)

    await cache.get_or_resolve(MOVIE)
    clock.advance(600)
    outcome = await cache.get_or_resolve(MOVIE)

    assert len(resolver.calls) == 2
    assert outcome.result.download_data == {"version": 2}


@pytest.mark.asyncio
async def test_partial_and_failed_outcomes_are_not_cached(resolver: CountingResolver) -> None:
    cache = ResolutionCache(resolver)

    resolver.partial = True
    await cache.get_or_resolve(MOVIE)
    resolver.partial = False
    resolver.fail = True
    failed = await cache.get_or_resolve(MOVIE)
    resolver.fail = False
    await cache.get_or_resolve(MOVIE)
    await cache.get_or_resolve(MOVIE)

    assert failed.status == "upstream_error"
    assert len(resolver.calls) == 3
    assert await cache.size() == 1


@pytest.mark.asyncio
async def test_concurrent_misses_share_one_resolution(resolver: CountingResolver) -> None:
    cache = ResolutionCache(resolver)
    resolver.gate = asyncio.Event()

    pending = [asyncio.create_task(cache.get_or_resolve(MOVIE)) for _ in range(5)]
    await asyncio.sleep(0)
    resolver.gate.set()
    outcomes = await asyncio.gather(*pending)

    assert resolver.calls == ["movie:603:0:0"]
    assert {o.result.download_data["version"] for o in outcomes} == {1}


@pytest.mark.asyncio
async def test_stale_entry_is_served_while_refreshing(resolver: CountingResolver, clock: FakeClock) -> None:
    cache = ResolutionCache(resolver, ttl=10, stale_while_revalidate=True, stale_grace=100, clock=clock)

    await cache.get_or_resolve(MOVIE)
    clock.advance(11)
    stale = await cache.get_or_resolve(MOVIE)
    await cache.wait_for_refreshes()
    fresh = await cache.get_or_resolve(MOVIE)

    assert stale.result.download_data == {"version": 1}
    assert fresh.result.download_data == {"version": 2}
    assert len(resolver.calls) == 2


@pytest.mark.asyncio
async def test_failed_refresh_keeps_serving_stale(resolver: CountingResolver, clock: FakeClock) -> None:
    cache = ResolutionCache(resolver, ttl=10, stale_while_revalidate=True, stale_grace=100, clock=clock)

    await cache.get_or_resolve(MOVIE)
    resolver.fail = True
    clock.advance(11)
    await cache.get_or_resolve(MOVIE)
    await cache.wait_for_refreshes()
    again = await cache.get_or_resolve(MOVIE)
    await cache.wait_for_refreshes()

    assert again.ok
    assert again.result.download_data == {"version": 1}


@pytest.mark.asyncio
async def test_entries_past_the_grace_window_resolve_synchronously(
    resolver: CountingResolver, clock: FakeClock
) -> None:
    cache = ResolutionCache(resolver, ttl=10, stale_while_revalidate=True, stale_grace=100, clock=clock)

    await cache.get_or_resolve(MOVIE)
    clock.advance(111)
    outcome = await cache.get_or_resolve(MOVIE)

    assert outcome.result.download_data == {"version": 2}
    assert len(resolver.calls) == 2


@pytest.mark.asyncio
async def test_redis_backend_round_trips_results(resolver: CountingResolver, clock: FakeClock) -> None:
    backend = RedisCacheBackend.from_url("fakeredis://")
    cache = ResolutionCache(resolver, backend, ttl=600, clock=clock)

    first = await cache.get_or_resolve(MOVIE)
    second = await cache.get_or_resolve(MOVIE)

    assert resolver.calls == ["movie:603:0:0"]
    assert second.result == first.result
    assert await cache.size() == 1

    clock.advance(601)
    third = await cache.get_or_resolve(MOVIE)
    assert third.result.download_data == {"version": 2}
    await cache.close()


@pytest.mark.asyncio
async def test_memory_backend_prunes_entries_closest_to_expiry() -> None:
    backend = MemoryCacheBackend(max_size=2)
    result = (await CountingResolver().resolve(MOVIE)).result

    for index, expires_at in enumerate((30.0, 10.0, 20.0)):
        await backend.set(CacheEntry(key=f"k{index}", value=result, expires_at=expires_at), lifetime=60)

    assert await backend.size() == 2
    assert await backend.get("k1") is None


@pytest.mark.asyncio
async def test_memory_backend_drops_expired_entries_on_write(
    resolver: CountingResolver, clock: FakeClock
) -> None:
    cache = ResolutionCache(resolver, ttl=10, clock=clock)

    for media_id in range(1, 501):
        await cache.get_or_resolve(ResolutionRequest(media_id=str(media_id)))
        clock.advance(11)

    assert len(resolver.calls) == 500
    assert await cache.backend.size() == 0


@pytest.mark.asyncio
async def test_memory_backend_keeps_entries_within_the_stale_grace(clock: FakeClock) -> None:
    backend = MemoryCacheBackend(clock=clock)
    result = (await CountingResolver().resolve(MOVIE)).result

    await backend.set(CacheEntry(key="a", value=result, expires_at=clock.now + 10), lifetime=110)
    clock.advance(50)
    await backend.set(CacheEntry(key="b", value=result, expires_at=clock.now + 10), lifetime=110)

    assert await backend.get("a") is not None
    clock.advance(61)
    assert await backend.get("a") is None
    assert await backend.size() == 1


@pytest.mark.asyncio
async def test_memory_backend_is_bounded_by_default(clock: FakeClock) -> None:
    backend = MemoryCacheBackend(clock=clock)
    result = (await CountingResolver().resolve(MOVIE)).result

    for index in range(DEFAULT_MEMORY_MAX_SIZE + 5):
        await backend.set(CacheEntry(key=f"k{index}", value=result, expires_at=clock.now + 600), lifetime=600)

    assert await backend.size() == DEFAULT_MEMORY_MAX_SIZE
