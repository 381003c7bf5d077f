"""Shared fixtures for game config integration tests."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import pytest
from starlette.testclient import TestClient

from gameconfig.server.app import create_app
from gameconfig.server.settings import GameConfigSettings
from shared.auth.settings import AuthSettings

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path

ADMIN_USERNAME = "ops_admin"
ADMIN_PASSWORD = "password123"


@pytest.fixture
def make_client(tmp_path: Path) -> Iterator[Callable[..., TestClient]]:
    """Build a started TestClient; keyword arguments override GameConfigSettings."""
    stack = contextlib.ExitStack()

    def _make(**overrides: object) -> TestClient:
        values: dict[str, object] = {
            "database_path": str(tmp_path / "storage.db"),
            "cache_dir": str(tmp_path / "cache"),
            "rate_limit_dir": str(tmp_path / "ratelimit"),
            "rate_limit_requests": 1000,
        }
        values.update(overrides)
        auth_settings = AuthSettings(
            password_hasher="simple",
            admin_username=ADMIN_USERNAME,
            admin_password=ADMIN_PASSWORD,
        )
        return stack.enter_context(TestClient(create_app(GameConfigSettings(**values), auth_settings)))

    with stack:
        yield _make


@pytest.fixture
def client(make_client: Callable[..., TestClient]) -> TestClient:
    return make_client()


@pytest.fixture
def admin_headers(client: TestClient) -> dict[str, str]:
    """Authorization header for the bootstrap admin."""
    response = client.post("/admin/login", json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def create_game(client: TestClient, admin_headers: dict[str, str]) -> Callable[..., tuple[str, str]]:
    """Create a game through the admin API and return ``(game_id, api_key)``."""

    def _create(name: str = "Space Miners") -> tuple[str, str]:
        response = client.post("/admin/games", json={"name": name}, headers=admin_headers)
        assert response.status_code == 201
        body = response.json()
        return body["game"]["id"], body["api_key"]

    return _create


@pytest.fixture
def add_config(client: TestClient, admin_headers: dict[str, str]) -> Callable[..., str]:
    """Create a config entry through the admin API and return its id."""

    def _add(game_id: str, key: str, value: object, **extra: object) -> str:
        response = client.post(
            f"/admin/games/{game_id}/configs",
            json={"key": key, "value": value, **extra},
            headers=admin_headers,
        )
        assert response.status_code == 201
        return response.json()["id"]

    return _add
