"""Value objects shared by the resolution pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .errors import (
    InvalidRequestError,
    NotFoundError,
    ResolverError,
    UpstreamUnavailableError,
)

MediaKind = Literal["movie", "tv"]


def _coerce_index(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise InvalidRequestError(f"{name} must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise InvalidRequestError(f"{name} must be an integer, got {value!r}") from exc
    if number < 0:
        raise InvalidRequestError(f"{name} must be >= 0, got {number}")
    return number


@dataclass(frozen=True, slots=True)
class ResolutionRequest:
    """A single lookup: one media id, optionally narrowed to an episode."""

    media_id: str
    is_series: bool = False
    season: int = 0
    episode: int = 0

    def __post_init__(self) -> None:
        raw = self.media_id if isinstance(self.media_id, str) else ""
        media_id = raw.strip()
        if not media_id.isascii() or not media_id.isdigit():
            raise InvalidRequestError(f"Invalid media id {self.media_id!r}")
        object.__setattr__(self, "media_id", media_id)
        object.__setattr__(self, "season", _coerce_index(self.season, "season"))
        object.__setattr__(self, "episode", _coerce_index(self.episode, "episode"))

    @property
    def kind(self) -> MediaKind:
        return "tv" if self.is_series else "movie"

    @property
    def cache_key(self) -> str:
        # Prefixed with the kind: TMDB numbers movies and series independently,
        # so a bare ``id:season:episode`` key would collide across the two.
        return f"{self.kind}:{self.media_id}:{self.season}:{self.episode}"


@dataclass(frozen=True, slots=True)
class TitleCandidate:
    text: str
    source: Literal["primary", "alternate"] = "primary"


@dataclass(frozen=True, slots=True)
class CatalogRow:
    """One search hit. Structured payloads may also carry year and detail path."""

    subject_id: str
    raw_title: str
    release_year: int | None = None
    detail_path: str | None = None


@dataclass(frozen=True, slots=True)
class SubjectRecord:
    subject_id: str
    used_title: str
    detail_path: str | None
    details_url: str | None


@dataclass(frozen=True, slots=True)
class MediaMetadata:
    """Identifier-provider answer for a media id."""

    media_id: str
    kind: MediaKind
    title: str
    year: str | None
    original_title: str | None = None
    alternative_titles: tuple[str, ...] = field(default_factory=tuple)


class ResolutionResult(BaseModel):
    """The unit returned to callers and stored in the cache."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    media_type: MediaKind = Field(alias="type")
    title: str
    year: str | None = None
    subject_id: str
    used_title: str
    season: int = 0
    episode: int = 0
    detail_path: str | None = None
    details_url: str
    has_resource: bool = False
    download_data: Any | None = None
    partial: bool = False
    missing: list[str] = Field(default_factory=list)


OutcomeStatus = Literal["ok", "not_found", "upstream_error"]


@dataclass(frozen=True, slots=True)
class ResolutionOutcome:
    """Result type threaded through the pipeline instead of bare exceptions."""

    status: OutcomeStatus
    result: ResolutionResult | None = None
    error: ResolverError | None = None

    @classmethod
    def success(cls, result: ResolutionResult) -> "ResolutionOutcome":
        return cls(status="ok", result=result)

    @classmethod
    def not_found(cls, error: NotFoundError) -> "ResolutionOutcome":
        return cls(status="not_found", error=error)

    @classmethod
    def upstream_error(cls, error: UpstreamUnavailableError) -> "ResolutionOutcome":
        return cls(status="upstream_error", error=error)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def unwrap(self) -> ResolutionResult:
        """Return the result or raise the carried error."""

        if self.result is not None:
            return self.result
        if self.error is not None:
            raise self.error
        raise ResolverError(f"Outcome {self.status!r} carries no result")
