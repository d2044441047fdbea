"""
Catalog payload parsers.

The catalog has no stable API contract. Search results arrive either as an
HTML page with the rows serialised inline as ``["<id>", "<tag>", "<title>"]``
triplets, or as JSON from the structured search endpoint. Both shapes are
hidden behind :class:`CatalogParser` so the pattern matching can be swapped
without touching network code.
"""
from __future__ import annotations

import json
import re
from typing import Any, Iterator, List, Optional, Protocol

from .models import CatalogRow

SUBJECT_ROW_RE = re.compile(r'"(\d{16,})",\s*"[^"]*",\s*"([^"]*)"')
_YEAR_RE = re.compile(r"(\d{4})")


class CatalogParser(Protocol):
    def parse_catalog_rows(self, payload: str) -> List[CatalogRow]:
        ...

    def find_detail_path(self, payload: str, subject_id: str, slug: str) -> Optional[str]:
        ...


def _scan_detail_path(payload: str, subject_id: str, slug: str) -> Optional[str]:
    if not payload or not subject_id or not slug:
        return None
    marker = payload.find(f'"{subject_id}"')
    if marker < 0:
        return None
    before = payload[:marker]
    pattern = re.compile(rf'"({re.escape(slug)}[^"]+)"', re.IGNORECASE)
    last_match: Optional[str] = None
    for match in pattern.finditer(before):
        last_match = match.group(1)
    return last_match


class HtmlCatalogParser:
    """Regex scraper for the inline row serialisation of the search page."""

    def parse_catalog_rows(self, payload: str) -> List[CatalogRow]:
        if not payload:
            return []
        return [
            CatalogRow(subject_id=match.group(1), raw_title=match.group(2))
            for match in SUBJECT_ROW_RE.finditer(payload)
        ]

    def find_detail_path(self, payload: str, subject_id: str, slug: str) -> Optional[str]:
        return _scan_detail_path(payload, subject_id, slug)


class JsonCatalogParser:
    """Walks a structured search response for objects carrying ``subjectId``."""

    def _load(self, payload: str) -> Any:
        try:
            return json.loads(payload)
        except (TypeError, ValueError):
            return None

    def _walk(self, node: Any) -> Iterator[dict]:
        if isinstance(node, dict):
            if node.get("subjectId") and isinstance(node.get("title"), str):
                yield node
            for value in node.values():
                yield from self._walk(value)
        elif isinstance(node, list):
            for value in node:
                yield from self._walk(value)

    @staticmethod
    def _extract_year(raw: Any) -> Optional[int]:
        if raw is None:
            return None
        match = _YEAR_RE.search(str(raw))
        return int(match.group(1)) if match else None

    def parse_catalog_rows(self, payload: str) -> List[CatalogRow]:
        rows: List[CatalogRow] = []
        for item in self._walk(self._load(payload)):
            detail_path = item.get("detailPath")
            rows.append(
                CatalogRow(
                    subject_id=str(item["subjectId"]),
                    raw_title=item["title"],
                    release_year=self._extract_year(item.get("releaseDate") or item.get("year")),
                    detail_path=detail_path if isinstance(detail_path, str) and detail_path else None,
                )
            )
        return rows

    def find_detail_path(self, payload: str, subject_id: str, slug: str) -> Optional[str]:
        for row in self.parse_catalog_rows(payload):
            if row.subject_id == subject_id and row.detail_path:
                return row.detail_path
        return _scan_detail_path(payload, subject_id, slug)


def detect_parser(payload: str) -> CatalogParser:
    """Pick the JSON parser for JSON documents, the HTML scraper otherwise."""
    stripped = (payload or "").lstrip()
    if stripped[:1] in ("{", "["):
        try:
            json.loads(stripped)
        except ValueError:
            return HtmlCatalogParser()
        return JsonCatalogParser()
    return HtmlCatalogParser()
