"""
Subject matching and detail-path extraction over catalog search payloads.
"""
from __future__ import annotations

from typing import Optional

from .models import CatalogRow
from .normalize import comparison_key, slugify
from .parsing import CatalogParser, detect_parser

DEFAULT_OVERLAP_THRESHOLD = 0.6
DEFAULT_YEAR_TOLERANCE = 1


def overlap_ratio(candidate_key: str, query_key: str) -> float:
    """Share of ``candidate_key`` characters that occur anywhere in ``query_key``."""
    if not candidate_key or not query_key:
        return 0.0
    alphabet = set(query_key)
    hits = sum(1 for char in candidate_key if char in alphabet)
    return hits / len(candidate_key)


def _year_conflicts(row: CatalogRow, year: Optional[int], tolerance: int) -> bool:
    if row.release_year is None or year is None:
        return False
    return abs(row.release_year - year) > tolerance


def row_matches(
    row: CatalogRow,
    query_key: str,
    *,
    year: Optional[int] = None,
    threshold: float = DEFAULT_OVERLAP_THRESHOLD,
    year_tolerance: int = DEFAULT_YEAR_TOLERANCE,
) -> bool:
    if not query_key or _year_conflicts(row, year, year_tolerance):
        return False
    candidate_key = comparison_key(row.raw_title)
    if not candidate_key:
        return False
    if candidate_key in query_key or query_key in candidate_key:
        return True
    return overlap_ratio(candidate_key, query_key) >= threshold


def match_subject(
    payload: str,
    title: str,
    *,
    year: Optional[int] = None,
    parser: Optional[CatalogParser] = None,
    threshold: float = DEFAULT_OVERLAP_THRESHOLD,
    year_tolerance: int = DEFAULT_YEAR_TOLERANCE,
) -> Optional[str]:
    """Return the subject id of the first row matching ``title``, in document order.

    A row matches when either comparison key contains the other, or, as the most
    permissive tier, when the character overlap ratio reaches ``threshold``.
    Rows whose known release year is further than ``year_tolerance`` from
    ``year`` are skipped.
    """
    query_key = comparison_key(title)
    if not query_key:
        return None
    parser = parser or detect_parser(payload)
    for row in parser.parse_catalog_rows(payload):
        if row_matches(
            row,
            query_key,
            year=year,
            threshold=threshold,
            year_tolerance=year_tolerance,
        ):
            return row.subject_id
    return None


def extract_detail_path(
    payload: str,
    subject_id: str,
    title: str,
    *,
    parser: Optional[CatalogParser] = None,
) -> Optional[str]:
    """Return the last slug-prefixed string preceding the first ``"<subject_id>"``."""
    slug = slugify(title)
    if not slug:
        return None
    parser = parser or detect_parser(payload)
    return parser.find_detail_path(payload, subject_id, slug)
