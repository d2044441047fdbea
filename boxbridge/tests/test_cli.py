"""Tests for the Typer-based boxbridge CLI."""
from __future__ import annotations

import importlib
import json
from typing import Any

import pytest
from fastapi.testclient import TestClient
from typer.testing import CliRunner

from boxbridge.api import create_app
from boxbridge.api.settings import BoxbridgeSettings
from boxbridge.cli import app as cli_app
from boxbridge.cli import client as client_module

from .conftest import MATRIX_SUBJECT_ID, FakeUpstream, search_page

cli_app_module = importlib.import_module("boxbridge.cli.app")


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def cli_client(upstream: FakeUpstream) -> TestClient:
    """Provide a TestClient and patch the CLI HTTP client factory."""

    settings = BoxbridgeSettings(tmdb_api_key="test-key", backoff_base=0.0, backoff_cap=0.0)
    app = create_app(settings=settings, transport=upstream.transport)
    test_client = TestClient(app)

    original_factory = client_module.create_client
    original_app_factory = cli_app_module.create_client

    def _factory(base_url: str, *, timeout: float = 60.0, transport: Any = None):  # type: ignore[override]
        return test_client

    client_module.create_client = _factory  # type: ignore[assignment]
    cli_app_module.create_client = _factory  # type: ignore[assignment]

    yield test_client

    client_module.create_client = original_factory  # type: ignore[assignment]
    cli_app_module.create_client = original_app_factory  # type: ignore[assignment]


def test_cli_health_command_outputs_status(runner: CliRunner, cli_client: TestClient) -> None:
    """The health command should display OK status."""

    result = runner.invoke(cli_app, ["health"])

    assert result.exit_code == 0
    assert "\"status\": \"ok\"" in result.output


def test_cli_movie_prints_resolution(runner: CliRunner, cli_client: TestClient) -> None:
    """The movie command should print the camelCase resolution payload."""

    result = runner.invoke(cli_app, ["movie", "603"])

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["subjectId"] == MATRIX_SUBJECT_ID
    assert payload["type"] == "movie"


def test_cli_episode_passes_season_and_episode(
    runner: CliRunner, cli_client: TestClient, upstream: FakeUpstream
) -> None:
    upstream.series["1399"] = {"name": "Game of Thrones", "first_air_date": "2011-04-17"}
    upstream.search_pages["Game of Thrones 2011"] = search_page(
        ("4492346735611449528", "Game of Thrones"), paths=("game-of-thrones-Xy12",)
    )

    result = runner.invoke(cli_app, ["episode", "1399", "3", "7"])

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert (payload["season"], payload["episode"]) == (3, 7)
    assert upstream.last("/subject/download").url.params["ep"] == "7"


def test_cli_tv_resolves_series_level(
    runner: CliRunner, cli_client: TestClient, upstream: FakeUpstream
) -> None:
    upstream.series["1399"] = {"name": "Game of Thrones", "first_air_date": "2011-04-17"}
    upstream.search_pages["Game of Thrones 2011"] = search_page(
        ("4492346735611449528", "Game of Thrones")
    )

    result = runner.invoke(cli_app, ["tv", "1399"])

    assert result.exit_code == 0
    assert json.loads(result.output)["type"] == "tv"


def test_cli_reports_not_found(runner: CliRunner, cli_client: TestClient) -> None:
    """Unknown ids should exit non-zero with the API's error detail."""

    result = runner.invoke(cli_app, ["movie", "42"])

    assert result.exit_code == 1
    assert "HTTP 404" in result.output
