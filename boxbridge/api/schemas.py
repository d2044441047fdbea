"""Pydantic models exposed by the boxbridge API."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

API_VERSION = "0.1.0"


class CacheHealthStatus(BaseModel):
    """Represents the resolution cache backend and its current size."""

    backend: Literal["memory", "redis"] = Field(default="memory")
    entries: int = Field(default=0, description="Number of cached resolutions.")


class HealthStatus(BaseModel):
    """Service health payload."""

    status: Literal["ok"] = Field(default="ok")
    version: str = Field(default=API_VERSION, description="Semantic version of the API service.")
    cache: CacheHealthStatus = Field(
        default_factory=CacheHealthStatus,
        description="Health information for the resolution cache.",
    )

