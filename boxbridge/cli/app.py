"""Command line interface for the boxbridge API."""
from __future__ import annotations

import json

import httpx
import typer

from .client import create_client


DEFAULT_API_BASE = "http://localhost:3000"

app = typer.Typer(help="Resolve TMDB ids to catalog download descriptors via the boxbridge API.")


def _api_base_option() -> typer.Option:
    return typer.Option(
        DEFAULT_API_BASE,
        "--api-base",
        help="Base URL for the boxbridge API service.",
        show_default=True,
        envvar="BOXBRIDGE_API_BASE",
    )


def _echo_response(response: httpx.Response) -> None:
    if response.status_code >= 400:
        try:
            detail = response.json().get("detail", response.text)
        except ValueError:
            detail = response.text
        typer.echo(f"HTTP {response.status_code}: {detail}", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(response.json(), indent=2, ensure_ascii=False))


@app.command()
def health(api_base: str = _api_base_option()) -> None:
    """Call the /health endpoint and pretty-print the response."""

    with create_client(api_base) as client:
        _echo_response(client.get("/health"))


@app.command()
def movie(
    media_id: str = typer.Argument(..., help="TMDB movie id."),
    api_base: str = _api_base_option(),
) -> None:
    """Resolve a movie."""

    with create_client(api_base) as client:
        _echo_response(client.get(f"/movie/{media_id}"))


@app.command()
def tv(
    media_id: str = typer.Argument(..., help="TMDB series id."),
    api_base: str = _api_base_option(),
) -> None:
    """Resolve a series at series level."""

    with create_client(api_base) as client:
        _echo_response(client.get(f"/tv/{media_id}"))


@app.command()
def episode(
    media_id: str = typer.Argument(..., help="TMDB series id."),
    season: int = typer.Argument(..., min=0, help="Season number."),
    episode_number: int = typer.Argument(..., min=0, metavar="EPISODE", help="Episode number."),
    api_base: str = _api_base_option(),
) -> None:
    """Resolve a single episode of a series."""

    with create_client(api_base) as client:
        _echo_response(client.get(f"/tv/{media_id}/{season}/{episode_number}"))
