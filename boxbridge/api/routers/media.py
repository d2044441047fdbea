"""Resolution endpoints: TMDB id in, catalog download descriptor out."""
from __future__ import annotations

from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException

from ...resolver import (
    InvalidRequestError,
    NotFoundError,
    ResolutionResult,
    ResolutionService,
    ResolverError,
    UpstreamUnavailableError,
)
from ..dependencies import get_resolution_service

router = APIRouter(tags=["media"])


def _raise_http(exc: ResolverError) -> NoReturn:
    if isinstance(exc, InvalidRequestError):
        status_code = 400
    elif isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, UpstreamUnavailableError):
        status_code = 502
    else:
        status_code = 500
    raise HTTPException(status_code=status_code, detail=str(exc)) from exc


@router.get("/movie/{media_id}", response_model=ResolutionResult, summary="Resolve a movie")
async def resolve_movie(
    media_id: str,
    service: ResolutionService = Depends(get_resolution_service),
) -> ResolutionResult:
    """Resolve a TMDB movie id to its catalog subject and download descriptor."""

    try:
        return await service.resolve_movie(media_id)
    except ResolverError as exc:
        _raise_http(exc)


@router.get("/tv/{media_id}", response_model=ResolutionResult, summary="Resolve a series")
async def resolve_series(
    media_id: str,
    service: ResolutionService = Depends(get_resolution_service),
) -> ResolutionResult:
    """Resolve a TMDB series id at series level (season 0, episode 0)."""

    try:
        return await service.resolve_series(media_id)
    except ResolverError as exc:
        _raise_http(exc)


@router.get(
    "/tv/{media_id}/{season}/{episode}",
    response_model=ResolutionResult,
    summary="Resolve a single episode",
)
async def resolve_episode(
    media_id: str,
    season: int,
    episode: int,
    service: ResolutionService = Depends(get_resolution_service),
) -> ResolutionResult:
    """Resolve one episode of a TMDB series."""

    try:
        return await service.resolve_episode(media_id, season, episode)
    except ResolverError as exc:
        _raise_http(exc)
