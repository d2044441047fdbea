"""Plain configuration consumed by the resolver pipeline."""
from __future__ import annotations

from dataclasses import dataclass

from .backoff import BackoffPolicy
from .catalog import DEFAULT_CATALOG_URL, DEFAULT_DOWNLOAD_PATH, DEFAULT_SEARCH_PATH, DEFAULT_USER_AGENT
from .matching import DEFAULT_OVERLAP_THRESHOLD, DEFAULT_YEAR_TOLERANCE


@dataclass(frozen=True, slots=True)
class ResolverConfig:
    """Knobs for one resolver instance; every field has a working default except the TMDB key."""

    tmdb_api_key: str | None = None
    tmdb_base_url: str = "https://api.themoviedb.org/3"
    catalog_base_url: str = DEFAULT_CATALOG_URL
    catalog_search_path: str = DEFAULT_SEARCH_PATH
    catalog_download_path: str = DEFAULT_DOWNLOAD_PATH
    catalog_timezone: str = "Asia/Manila"
    user_agent: str = DEFAULT_USER_AGENT
    max_attempts: int = 4
    backoff_base: float = 0.5
    backoff_cap: float = 3.0
    backoff_jitter: float = 0.0
    metadata_timeout: float = 10.0
    search_timeout: float = 5.0
    download_timeout: float = 4.0
    overlap_threshold: float = DEFAULT_OVERLAP_THRESHOLD
    year_tolerance: int = DEFAULT_YEAR_TOLERANCE
    use_alternative_titles: bool = True
    cache_ttl: float = 600.0
    stale_while_revalidate: bool = False
    stale_grace: float = 600.0

    @property
    def backoff_policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.backoff_base,
            max_delay=self.backoff_cap,
            jitter=self.backoff_jitter,
        )
