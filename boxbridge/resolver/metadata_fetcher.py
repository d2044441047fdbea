"""
TMDB metadata fetcher helper.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .backoff import BackoffExecutor
from .errors import NotFoundError, ResolverError, UpstreamStatusError
from .models import MediaKind, MediaMetadata

logger = logging.getLogger(__name__)


class MetadataFetcher:
    TMDB_ENDPOINT = "https://api.themoviedb.org/3"

    def __init__(
        self,
        executor: BackoffExecutor,
        api_key: Optional[str],
        *,
        endpoint: Optional[str] = None,
        timeout: float = 10.0,
    ) -> None:
        self.executor = executor
        self.api_key = api_key
        self.endpoint = (endpoint or self.TMDB_ENDPOINT).rstrip("/")
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def _get_json(self, path: str) -> Dict[str, object]:
        if not self.enabled:
            raise ResolverError("TMDB API key is not configured")
        response = await self.executor.get(
            f"{self.endpoint}/{path}",
            params={"api_key": self.api_key},
            timeout=self.timeout,
        )
        try:
            data = response.json()
        except ValueError as exc:
            raise ResolverError(f"TMDB returned invalid JSON for /{path}") from exc
        if not isinstance(data, dict):
            raise ResolverError(f"TMDB response for /{path} must be an object")
        return data

    def _extract_year(self, date_str: Optional[object]) -> Optional[str]:
        if not date_str or not isinstance(date_str, str):
            return None
        year = date_str.split("-")[0].strip()
        return year if year.isdigit() else None

    async def fetch(self, media_id: str, kind: MediaKind) -> MediaMetadata:
        """Return title and year for a TMDB id; an unknown id raises ``NotFoundError``."""

        try:
            data = await self._get_json(f"{kind}/{media_id}")
        except UpstreamStatusError as exc:
            if exc.status == 404:
                raise NotFoundError(f"TMDB has no {kind} with id {media_id}") from exc
            raise

        if kind == "tv":
            title = data.get("name")
            original = data.get("original_name")
            date = data.get("first_air_date")
        else:
            title = data.get("title")
            original = data.get("original_title")
            date = data.get("release_date")

        if not isinstance(title, str) or not title.strip():
            raise NotFoundError(f"TMDB {kind} {media_id} has no title")

        return MediaMetadata(
            media_id=media_id,
            kind=kind,
            title=title.strip(),
            year=self._extract_year(date),
            original_title=original.strip() if isinstance(original, str) and original.strip() else None,
        )

    async def alternative_titles(self, media_id: str, kind: MediaKind) -> List[str]:
        data = await self._get_json(f"{kind}/{media_id}/alternative_titles")
        # Movies list under "titles", series under "results".
        entries = data.get("titles") if kind == "movie" else data.get("results")
        titles: List[str] = []
        for entry in entries or []:
            if not isinstance(entry, dict):
                continue
            value = entry.get("title")
            if isinstance(value, str) and value.strip():
                titles.append(value.strip())
        return titles
