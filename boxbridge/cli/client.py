"""HTTP client helpers for the boxbridge CLI."""
from __future__ import annotations

import httpx


def create_client(base_url: str, *, timeout: float = 60.0, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Instantiate an HTTPX client; resolutions retry upstream, so the timeout is generous."""

    return httpx.Client(base_url=base_url, timeout=timeout, transport=transport)
