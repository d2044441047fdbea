"""FastAPI dependencies for the boxbridge API."""
import httpx
from fastapi import Depends, Request

from ..resolver import ResolutionService
from .settings import BoxbridgeSettings
from .state import AppState


def get_app_state(request: Request) -> AppState:
    """Resolve the shared application state from the FastAPI request."""
    return request.app.state.app_state


def get_settings(app_state: AppState = Depends(get_app_state)) -> BoxbridgeSettings:
    """Return the settings the application was built with."""
    return app_state.settings


def get_resolution_service(app_state: AppState = Depends(get_app_state)) -> ResolutionService:
    """Return the cached resolution service."""
    return app_state.service


def get_http_client(app_state: AppState = Depends(get_app_state)) -> httpx.AsyncClient:
    """Return the shared outbound HTTP client."""
    return app_state.http_client
