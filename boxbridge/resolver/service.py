"""
Resolution pipeline: TMDB id -> catalog subject -> download descriptor.
"""
from __future__ import annotations

import logging
from typing import Any, List, Optional, Tuple

import httpx

from .backoff import BackoffExecutor
from .cache import ResolutionCache
from .catalog import CatalogClient
from .config import ResolverConfig
from .errors import NotFoundError, ResolverError, UpstreamUnavailableError
from .matching import extract_detail_path, match_subject
from .metadata_fetcher import MetadataFetcher
from .models import (
    MediaMetadata,
    ResolutionOutcome,
    ResolutionRequest,
    ResolutionResult,
    SubjectRecord,
    TitleCandidate,
)
from .normalize import comparison_key
from .parsing import CatalogParser

logger = logging.getLogger(__name__)


def build_candidates(metadata: MediaMetadata) -> List[TitleCandidate]:
    """Primary title first, then original and alternate titles, deduplicated in order."""

    candidates: List[TitleCandidate] = []
    seen: set[str] = set()
    raw: List[Tuple[str, str]] = [(metadata.title, "primary")]
    if metadata.original_title:
        raw.append((metadata.original_title, "alternate"))
    raw.extend((title, "alternate") for title in metadata.alternative_titles)

    for text, source in raw:
        key = comparison_key(text)
        if not key or key in seen:
            continue
        seen.add(key)
        candidates.append(TitleCandidate(text=text, source=source))  # type: ignore[arg-type]
    return candidates


def has_resource(download_data: Any) -> bool:
    if not isinstance(download_data, dict):
        return False
    for container in (download_data, download_data.get("data")):
        if not isinstance(container, dict):
            continue
        flag = container.get("hasResource")
        if flag is not None:
            return bool(flag)
        if container.get("downloads"):
            return True
    return False


class MetadataResolver:
    """Runs one resolution as a short sequential pipeline of upstream calls."""

    def __init__(
        self,
        metadata: MetadataFetcher,
        catalog: CatalogClient,
        config: Optional[ResolverConfig] = None,
        *,
        parser: Optional[CatalogParser] = None,
    ) -> None:
        self.metadata = metadata
        self.catalog = catalog
        self.config = config or ResolverConfig()
        self.parser = parser

    async def _load_metadata(self, request: ResolutionRequest) -> MediaMetadata:
        metadata = await self.metadata.fetch(request.media_id, request.kind)
        if not self.config.use_alternative_titles:
            return metadata
        try:
            alternates = await self.metadata.alternative_titles(request.media_id, request.kind)
        except ResolverError as exc:
            logger.warning("Alternative titles unavailable for %s %s: %s", request.kind, request.media_id, exc)
            return metadata
        return MediaMetadata(
            media_id=metadata.media_id,
            kind=metadata.kind,
            title=metadata.title,
            year=metadata.year,
            original_title=metadata.original_title,
            alternative_titles=tuple(alternates),
        )

    async def _find_subject(
        self, candidates: List[TitleCandidate], year: Optional[str]
    ) -> Optional[Tuple[str, str, str]]:
        numeric_year = int(year) if year and year.isdigit() else None
        for candidate in candidates:
            keyword = f"{candidate.text} {year}" if year else candidate.text
            payload = await self.catalog.search(keyword)
            subject_id = match_subject(
                payload,
                candidate.text,
                year=numeric_year,
                parser=self.parser,
                threshold=self.config.overlap_threshold,
                year_tolerance=self.config.year_tolerance,
            )
            if subject_id:
                logger.debug("Matched %r (%s) to subject %s", candidate.text, candidate.source, subject_id)
                return subject_id, candidate.text, payload
        return None

    async def resolve(self, request: ResolutionRequest) -> ResolutionOutcome:
        try:
            metadata = await self._load_metadata(request)
            candidates = build_candidates(metadata)
            found = await self._find_subject(candidates, metadata.year)
        except NotFoundError as exc:
            logger.info("Resolution of %s not found: %s", request.cache_key, exc)
            return ResolutionOutcome.not_found(exc)
        except UpstreamUnavailableError as exc:
            logger.info("Resolution of %s failed upstream: %s", request.cache_key, exc)
            return ResolutionOutcome.upstream_error(exc)

        if found is None:
            tried = ", ".join(repr(c.text) for c in candidates)
            error = NotFoundError(f"No catalog subject matched {request.kind} {request.media_id} (tried {tried})")
            logger.info("Resolution of %s not found: %s", request.cache_key, error)
            return ResolutionOutcome.not_found(error)

        subject_id, used_title, payload = found
        detail_path = extract_detail_path(payload, subject_id, used_title, parser=self.parser)
        subject = SubjectRecord(
            subject_id=subject_id,
            used_title=used_title,
            detail_path=detail_path,
            details_url=self.catalog.details_url(subject_id, detail_path),
        )

        missing: List[str] = []
        if subject.detail_path is None:
            missing.append("detailPath")

        download_data: Any = None
        try:
            download_data = await self.catalog.download(
                subject.subject_id, request.season, request.episode, subject.details_url
            )
        except UpstreamUnavailableError as exc:
            logger.warning("Download descriptor unavailable for subject %s: %s", subject.subject_id, exc)
            missing.append("downloadData")

        result = ResolutionResult(
            media_type=request.kind,
            title=metadata.title,
            year=metadata.year,
            subject_id=subject.subject_id,
            used_title=subject.used_title,
            season=request.season,
            episode=request.episode,
            detail_path=subject.detail_path,
            details_url=subject.details_url,
            has_resource=has_resource(download_data),
            download_data=download_data,
            partial=bool(missing),
            missing=missing,
        )
        logger.info(
            "Resolved %s to subject %s%s",
            request.cache_key,
            subject.subject_id,
            f" (partial: {', '.join(missing)})" if missing else "",
        )
        return ResolutionOutcome.success(result)


class ResolutionService:
    """Public entry points; each call goes through the resolution cache."""

    def __init__(self, cache: ResolutionCache) -> None:
        self.cache = cache

    async def resolve(self, request: ResolutionRequest) -> ResolutionResult:
        outcome = await self.cache.get_or_resolve(request)
        return outcome.unwrap()

    async def resolve_movie(self, media_id: str) -> ResolutionResult:
        return await self.resolve(ResolutionRequest(media_id=media_id))

    async def resolve_series(self, media_id: str) -> ResolutionResult:
        return await self.resolve(ResolutionRequest(media_id=media_id, is_series=True))

    async def resolve_episode(self, media_id: str, season: int, episode: int) -> ResolutionResult:
        return await self.resolve(
            ResolutionRequest(media_id=media_id, is_series=True, season=season, episode=episode)
        )


def build_service(
    client: httpx.AsyncClient,
    config: ResolverConfig,
    *,
    cache_backend=None,
    executor: Optional[BackoffExecutor] = None,
) -> ResolutionService:
    """Wire executor, upstream clients, resolver and cache around one HTTP client."""

    executor = executor or BackoffExecutor(client, config.backoff_policy)
    metadata = MetadataFetcher(
        executor,
        config.tmdb_api_key,
        endpoint=config.tmdb_base_url,
        timeout=config.metadata_timeout,
    )
    catalog = CatalogClient(
        executor,
        base_url=config.catalog_base_url,
        search_path=config.catalog_search_path,
        download_path=config.catalog_download_path,
        user_agent=config.user_agent,
        timezone=config.catalog_timezone,
        search_timeout=config.search_timeout,
        download_timeout=config.download_timeout,
    )
    resolver = MetadataResolver(metadata, catalog, config)
    cache = ResolutionCache(
        resolver,
        cache_backend,
        ttl=config.cache_ttl,
        stale_while_revalidate=config.stale_while_revalidate,
        stale_grace=config.stale_grace,
    )
    return ResolutionService(cache)
