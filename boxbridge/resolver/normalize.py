"""
Title normalisation helpers used for matching and slug construction.
"""
from __future__ import annotations

import re
import unicodedata

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_NON_ALNUM_RUN_RE = re.compile(r"[^a-z0-9]+")
_APOSTROPHES_RE = re.compile(r"['’]")


def _fold_ascii(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value)
    return normalized.encode("ascii", "ignore").decode("ascii").lower()


def comparison_key(title: str | None) -> str:
    """Lower-cased alphanumerics only, e.g. ``"The Matrix: Reloaded"`` -> ``"thematrixreloaded"``."""
    if not title:
        return ""
    return _NON_ALNUM_RE.sub("", _fold_ascii(title))


def slugify(title: str | None) -> str:
    """Catalog-style slug prefix with a trailing hyphen, or ``""`` when nothing is left."""
    if not title:
        return ""
    value = _APOSTROPHES_RE.sub("", title.strip())
    value = _fold_ascii(value).replace("&", "and")
    cleaned = _NON_ALNUM_RUN_RE.sub("-", value).strip("-")
    if not cleaned:
        return ""
    return f"{cleaned}-"
