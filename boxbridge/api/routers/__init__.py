"""Router exports for the boxbridge API."""
from . import health, media, proxy

__all__ = ["health", "media", "proxy"]
