"""Shared fakes for TMDB and catalog upstreams."""
from __future__ import annotations

import json
import sys
from collections import defaultdict
from pathlib import Path
from typing import Any

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from boxbridge.resolver import ResolverConfig  # noqa: E402

TMDB_BASE = "https://api.themoviedb.org/3"
CATALOG_BASE = "https://moviebox.ph"
MATRIX_SUBJECT_ID = "8906247916759695608"
MATRIX_DETAIL_PATH = "the-matrix-Jq1n8oGp4v2"


def search_page(*rows: tuple[str, str], paths: tuple[str, ...] = ()) -> str:
    """Build a search page embedding rows the way the catalog serialises them."""

    chunks = [json.dumps(path) for path in paths]
    chunks.extend(json.dumps([subject_id, "subject", title]) for subject_id, title in rows)
    return (
        "<html><head><title>Search</title></head><body>"
        f"<script>window.__NUXT__=[{','.join(chunks)}]</script>"
        "</body></html>"
    )


class FakeUpstream:
    """In-process stand-in for TMDB and the catalog, counting every request."""

    def __init__(self) -> None:
        self.movies: dict[str, dict[str, Any]] = {}
        self.series: dict[str, dict[str, Any]] = {}
        self.alternatives: dict[str, list[str]] = {}
        self.search_pages: dict[str, str] = {}
        self.download_payload: Any = {"code": 0, "data": {"hasResource": True, "downloads": []}}
        self.assets: dict[str, bytes] = {}
        self.raw_bodies: dict[str, str] = {}
        self.queued_statuses: dict[str, list[int]] = defaultdict(list)
        self.requests: list[httpx.Request] = []

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, path_fragment: str) -> int:
        return sum(1 for request in self.requests if path_fragment in request.url.path)

    def last(self, path_fragment: str) -> httpx.Request:
        matching = [request for request in self.requests if path_fragment in request.url.path]
        assert matching, f"no request to {path_fragment}"
        return matching[-1]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        queued = self.queued_statuses.get(path)
        if queued:
            return httpx.Response(queued.pop(0), text="blocked")

        if path in self.raw_bodies:
            return httpx.Response(200, text=self.raw_bodies[path])
        if path in self.assets:
            return httpx.Response(200, content=self.assets[path], headers={"content-type": "video/mp4"})
        if request.url.host == "api.themoviedb.org":
            return self._tmdb(path)
        if path == "/web/searchResult":
            keyword = request.url.params.get("keyword", "")
            return httpx.Response(200, text=self.search_pages.get(keyword, "<html></html>"))
        if path == "/wefeed-h5-bff/web/subject/download":
            return httpx.Response(200, json=self.download_payload)
        return httpx.Response(404, text="not found")

    def _tmdb(self, path: str) -> httpx.Response:
        parts = path.removeprefix("/3/").split("/")
        kind, media_id = parts[0], parts[1]
        store = self.movies if kind == "movie" else self.series
        if media_id not in store:
            return httpx.Response(404, json={"status_code": 34})
        if len(parts) > 2 and parts[2] == "alternative_titles":
            key = "titles" if kind == "movie" else "results"
            titles = [{"iso_3166_1": "US", "title": t} for t in self.alternatives.get(media_id, [])]
            return httpx.Response(200, json={"id": int(media_id), key: titles})
        return httpx.Response(200, json=store[media_id])


@pytest.fixture()
def upstream() -> FakeUpstream:
    """A fake upstream that already knows The Matrix."""

    fake = FakeUpstream()
    fake.movies["603"] = {
        "id": 603,
        "title": "The Matrix",
        "original_title": "The Matrix",
        "release_date": "1999-03-30",
    }
    fake.search_pages["The Matrix 1999"] = search_page(
        (MATRIX_SUBJECT_ID, "The Matrix"),
        paths=(MATRIX_DETAIL_PATH,),
    )
    return fake


@pytest.fixture()
def resolver_config() -> ResolverConfig:
    """Resolver configuration with instant retries."""

    return ResolverConfig(tmdb_api_key="test-key", backoff_base=0.0, backoff_cap=0.0)
