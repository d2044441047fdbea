"""Health endpoints."""
from fastapi import APIRouter, Depends

from ..dependencies import get_app_state
from ..schemas import CacheHealthStatus, HealthStatus
from ..state import AppState

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthStatus)
async def get_health(app_state: AppState = Depends(get_app_state)) -> HealthStatus:
    """Return service heartbeat information."""

    cache = app_state.service.cache
    return HealthStatus(
        cache=CacheHealthStatus(backend=cache.backend.name, entries=await cache.size())
    )
