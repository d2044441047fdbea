"""
HTTP access to the catalog site: search pages and download descriptors.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Optional

from .backoff import BackoffExecutor
from .errors import UpstreamUnavailableError

DEFAULT_CATALOG_URL = "https://moviebox.ph"
DEFAULT_SEARCH_PATH = "/web/searchResult"
DEFAULT_DOWNLOAD_PATH = "/wefeed-h5-bff/web/subject/download"
DEFAULT_USER_AGENT = "Mozilla/5.0"


class CatalogClient:
    def __init__(
        self,
        executor: BackoffExecutor,
        *,
        base_url: str = DEFAULT_CATALOG_URL,
        search_path: str = DEFAULT_SEARCH_PATH,
        download_path: str = DEFAULT_DOWNLOAD_PATH,
        user_agent: str = DEFAULT_USER_AGENT,
        timezone: str = "Asia/Manila",
        search_timeout: float = 5.0,
        download_timeout: float = 4.0,
    ) -> None:
        self.executor = executor
        self.base_url = base_url.rstrip("/")
        self.search_path = search_path
        self.download_path = download_path
        self.user_agent = user_agent
        self.timezone = timezone
        self.search_timeout = search_timeout
        self.download_timeout = download_timeout

    def details_url(self, subject_id: str, detail_path: Optional[str]) -> str:
        if detail_path:
            return f"{self.base_url}/movies/{detail_path}?id={subject_id}"
        return f"{self.base_url}/detail?id={subject_id}"

    def download_headers(self, details_url: Optional[str]) -> Dict[str, str]:
        # The download endpoint checks the referer against a details page.
        return {
            "accept": "application/json",
            "referer": details_url or f"{self.base_url}/",
            "origin": self.base_url,
            "user-agent": self.user_agent,
            "x-client-info": json.dumps({"timezone": self.timezone}),
            "x-source": "h5",
            "accept-language": "en-US,en;q=0.9",
        }

    async def search(self, keyword: str) -> str:
        response = await self.executor.get(
            f"{self.base_url}{self.search_path}",
            params={"keyword": keyword},
            headers={"user-agent": self.user_agent},
            timeout=self.search_timeout,
        )
        return response.text

    async def download(
        self,
        subject_id: str,
        season: int,
        episode: int,
        details_url: Optional[str],
    ) -> Any:
        url = f"{self.base_url}{self.download_path}"
        response = await self.executor.get(
            url,
            params={"subjectId": subject_id, "se": season, "ep": episode},
            headers=self.download_headers(details_url),
            timeout=self.download_timeout,
        )
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamUnavailableError(
                f"GET {url} returned a non-JSON download descriptor",
                url=url,
                status=response.status_code,
                attempts=1,
            ) from exc
