"""boxbridge: resolve TMDB ids to catalog download descriptors."""

__version__ = "0.1.0"
