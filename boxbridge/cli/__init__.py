"""Typer CLI for the boxbridge API."""

from .app import app

__all__ = ["app"]
