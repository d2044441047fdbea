"""Application factory for the boxbridge API."""
import math
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .ratelimit import RATE_LIMIT_MESSAGE, RateLimiter
from .routers import health, media, proxy
from .schemas import API_VERSION
from .settings import BoxbridgeSettings
from .state import AppState


def _install_rate_limit(app: FastAPI, limiter: RateLimiter) -> None:
    @app.middleware("http")
    async def rate_limit(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        client_ip = request.client.host if request.client else "unknown"
        retry_after = limiter.hit(client_ip)
        if retry_after is not None:
            return JSONResponse(
                status_code=429,
                content={"detail": RATE_LIMIT_MESSAGE},
                headers={"Retry-After": str(max(1, math.ceil(retry_after)))},
            )
        return await call_next(request)


def create_app(
    settings: BoxbridgeSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    ``transport`` replaces the outbound HTTP transport, which lets tests serve
    TMDB and catalog responses from an ``httpx.MockTransport``.
    """

    resolved_settings = settings or BoxbridgeSettings()
    app_state = AppState(settings=resolved_settings, transport=transport)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await app_state.close()

    app = FastAPI(title="boxbridge", version=API_VERSION, lifespan=lifespan)
    app.state.app_state = app_state
    app.state.settings = app_state.settings

    # Registered before CORS so throttled responses still carry CORS headers.
    if resolved_settings.rate_limit_max > 0:
        _install_rate_limit(
            app,
            RateLimiter(resolved_settings.rate_limit_max, resolved_settings.rate_limit_window),
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for router in (health.router, media.router, proxy.router):
        app.include_router(router)

    return app
