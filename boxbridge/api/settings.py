"""Runtime configuration for the boxbridge API."""
from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..resolver.config import ResolverConfig


class BoxbridgeSettings(BaseSettings):
    """Environment-aware settings for the resolution service."""

    tmdb_api_key: str | None = Field(
        default=None, description="TMDB API key used to look up titles and years."
    )
    tmdb_base_url: str = Field(
        default="https://api.themoviedb.org/3", description="Base URL of the TMDB v3 API."
    )
    catalog_base_url: str = Field(
        default="https://moviebox.ph", description="Base URL of the catalog site."
    )
    catalog_search_path: str = Field(
        default="/web/searchResult", description="Path of the catalog search page."
    )
    catalog_download_path: str = Field(
        default="/wefeed-h5-bff/web/subject/download",
        description="Path of the catalog download descriptor endpoint.",
    )
    catalog_timezone: str = Field(
        default="Asia/Manila", description="Timezone reported in the x-client-info header."
    )
    user_agent: str = Field(default="Mozilla/5.0", description="User agent sent upstream.")
    stream_base_url: str = Field(
        default="https://valiw.hakunaymatata.com",
        description="Video CDN host served under /stream.",
    )
    subtitle_base_url: str = Field(
        default="https://cacdn.hakunaymatata.com",
        description="Subtitle CDN host served under /subtitle.",
    )
    host: str = Field(default="0.0.0.0", description="Interface the API server binds to.")
    port: int = Field(default=3000, description="Port the API server listens on.")
    log_level: str = Field(default="INFO", description="Root logging level.")
    cache_backend: Literal["memory", "redis"] = Field(
        default="memory", description="Where resolution results are cached."
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Connection URL used when cache_backend is redis.",
    )
    cache_max_size: int = Field(
        default=1024, ge=1, description="Most entries the in-memory cache holds."
    )
    rate_limit_max: int = Field(
        default=50, ge=0, description="Requests allowed per client IP and window; 0 disables the limit."
    )
    rate_limit_window: float = Field(
        default=900.0, gt=0, description="Length of the rate limit window in seconds."
    )
    cache_ttl: float = Field(default=600.0, description="Seconds a resolution stays fresh.")
    stale_while_revalidate: bool = Field(
        default=False, description="Serve expired entries while refreshing them in the background."
    )
    stale_grace: float = Field(
        default=600.0, description="Seconds an expired entry may still be served stale."
    )
    max_attempts: int = Field(default=4, ge=1, description="Attempts per upstream GET.")
    backoff_base: float = Field(default=0.5, description="First retry delay in seconds.")
    backoff_cap: float = Field(default=3.0, description="Upper bound for a retry delay.")
    backoff_jitter: float = Field(
        default=0.0, ge=0.0, description="Up to this many random seconds added to each retry delay."
    )
    metadata_timeout: float = Field(default=10.0, description="Per-attempt TMDB timeout.")
    search_timeout: float = Field(default=5.0, description="Per-attempt catalog search timeout.")
    download_timeout: float = Field(default=4.0, description="Per-attempt download timeout.")
    overlap_threshold: float = Field(
        default=0.6, ge=0.0, le=1.0, description="Minimum character overlap for a fuzzy match."
    )
    year_tolerance: int = Field(
        default=1, ge=0, description="Allowed year difference when the catalog reports one."
    )
    use_alternative_titles: bool = Field(
        default=True, description="Also search TMDB alternative titles."
    )

    model_config = SettingsConfigDict(
        env_prefix="BOXBRIDGE_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    def resolver_config(self) -> ResolverConfig:
        """Project the settings onto the resolver's plain configuration."""

        return ResolverConfig(
            tmdb_api_key=self.tmdb_api_key,
            tmdb_base_url=self.tmdb_base_url,
            catalog_base_url=self.catalog_base_url,
            catalog_search_path=self.catalog_search_path,
            catalog_download_path=self.catalog_download_path,
            catalog_timezone=self.catalog_timezone,
            user_agent=self.user_agent,
            max_attempts=self.max_attempts,
            backoff_base=self.backoff_base,
            backoff_cap=self.backoff_cap,
            backoff_jitter=self.backoff_jitter,
            metadata_timeout=self.metadata_timeout,
            search_timeout=self.search_timeout,
            download_timeout=self.download_timeout,
            overlap_threshold=self.overlap_threshold,
            year_tolerance=self.year_tolerance,
            use_alternative_titles=self.use_alternative_titles,
            cache_ttl=self.cache_ttl,
            stale_while_revalidate=self.stale_while_revalidate,
            stale_grace=self.stale_grace,
        )
