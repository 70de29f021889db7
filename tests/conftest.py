"""
Pytest configuration and fixtures for rest-conventions tests.
"""

# pylint: disable=redefined-outer-name  # standard pytest fixture pattern

from typing import Any, Callable

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.app import create_app
from src.config import Settings, get_settings

TEST_CONFIG: dict[str, Any] = {
    "testing": True,
    "debug": True,
    "log_level": "DEBUG",
    "cors_origins": ["http://localhost:3000"],
}


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Clear cached settings before and after each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def app() -> FastAPI:
    """Create a test application with a fresh store."""
    return create_app(TEST_CONFIG)


@pytest.fixture
def app_settings(app: FastAPI) -> Settings:
    """Settings of the test application."""
    return app.state.settings


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create a test client for the application."""
    return TestClient(app)


@pytest.fixture
def make_client() -> Callable[..., TestClient]:
    """Factory building a client for an application with extra settings."""

    def _make(**overrides: Any) -> TestClient:
        return TestClient(create_app({**TEST_CONFIG, **overrides}))

    return _make


@pytest.fixture
def create_user(client: TestClient) -> Callable[..., dict[str, Any]]:
    """Helper fixture creating a user through the API and returning its content."""

    def _create(name: str = "Ada", email: str | None = None) -> dict[str, Any]:
        email = email or f"{name.lower().replace(' ', '.')}@example.com"
        response = client.post("/api/v1/users", json={"name": name, "email": email})
        assert response.status_code == 201, response.text
        return response.json()["content"]

    return _create


@pytest.fixture
def create_group(client: TestClient) -> Callable[..., dict[str, Any]]:
    """Helper fixture creating a group through the API and returning its content."""

    def _create(name: str = "climbers", description: str | None = None) -> dict[str, Any]:
        response = client.post(
            "/api/v1/groups", json={"name": name, "description": description}
        )
        assert response.status_code == 201, response.text
        return response.json()["content"]

    return _create


@pytest.fixture
def resources_yaml(tmp_path):
    """Write a resource file and return a function giving its path."""

    def _write(content: str):
        path = tmp_path / "resources.yaml"
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def check_envelope() -> Callable[[dict[str, Any], int, bool], None]:
    """Return a checker for the common envelope fields of a response body."""

    def _check(body: dict[str, Any], status_code: int, success: bool) -> None:
        assert set(body) == {"success", "status_code", "status_text", "error_details", "content"}
        assert body["status_code"] == status_code
        assert body["success"] is success
        assert isinstance(body["content"], (dict, list))
        if success:
            assert body["error_details"] == []
        else:
            assert len(body["error_details"]) >= 1

    return _check
