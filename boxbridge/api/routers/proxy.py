"""Byte-streaming relay for catalog video and subtitle assets."""
from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from ..dependencies import get_http_client, get_settings
from ..settings import BoxbridgeSettings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["proxy"])

EXCLUDED_HEADERS = {"content-encoding", "content-length", "transfer-encoding", "connection"}
FORWARDED_REQUEST_HEADERS = ("range", "if-range", "accept")


async def _relay(
    url: str,
    request: Request,
    client: httpx.AsyncClient,
    settings: BoxbridgeSettings,
) -> StreamingResponse:
    headers = {
        "user-agent": settings.user_agent,
        "referer": settings.catalog_base_url.rstrip("/"),
    }
    for name in FORWARDED_REQUEST_HEADERS:
        value = request.headers.get(name)
        if value:
            headers[name] = value

    upstream_request = client.build_request("GET", url, headers=headers)
    try:
        upstream = await client.send(upstream_request, stream=True)
    except httpx.HTTPError as exc:
        logger.warning("Relay of %s failed: %s", url, exc)
        raise HTTPException(status_code=502, detail=f"Failed to proxy URL: {exc}") from exc

    response_headers = {
        key: value for key, value in upstream.headers.items() if key.lower() not in EXCLUDED_HEADERS
    }
    return StreamingResponse(
        upstream.aiter_bytes(),
        status_code=upstream.status_code,
        headers=response_headers,
        background=BackgroundTask(upstream.aclose),
    )


def _join(base_url: str, path: str, request: Request) -> str:
    url = f"{base_url.rstrip('/')}/{path.lstrip('/')}"
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


@router.get("/proxy", summary="Relay an absolute asset URL")
async def proxy_url(
    request: Request,
    url: str | None = None,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: BoxbridgeSettings = Depends(get_settings),
) -> StreamingResponse:
    """Stream an arbitrary http(s) asset with the catalog referer attached."""

    if not url or not url.startswith(("http://", "https://")):
        raise HTTPException(status_code=400, detail="Invalid or missing URL")
    return await _relay(url, request, client, settings)


@router.get("/stream/{path:path}", summary="Relay a video CDN path")
async def proxy_stream(
    path: str,
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: BoxbridgeSettings = Depends(get_settings),
) -> StreamingResponse:
    return await _relay(_join(settings.stream_base_url, path, request), request, client, settings)


@router.get("/subtitle/{path:path}", summary="Relay a subtitle CDN path")
async def proxy_subtitle(
    path: str,
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: BoxbridgeSettings = Depends(get_settings),
) -> StreamingResponse:
    return await _relay(_join(settings.subtitle_base_url, path, request), request, client, settings)
