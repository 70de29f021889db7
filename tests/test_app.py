"""Tests for FastAPI application factory and middleware."""

from typing import Callable
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.app import create_app, served_endpoints
from src.config import ConfigurationError, Settings
from src.errors import ErrorCode


class TestCreateApp:
    """Tests for the create_app factory function."""

    def test_create_app_returns_fastapi_instance(self) -> None:
        """Factory should return a FastAPI application instance."""
        app = create_app({"testing": True})
        assert isinstance(app, FastAPI)

    def test_create_app_with_config_override(self) -> None:
        """Config override should modify application settings."""
        app = create_app({"app_version": "1.2.3", "testing": True})
        assert app.state.settings.app_version == "1.2.3"
        assert isinstance(app.state.settings, Settings)

    def test_create_app_sets_title_from_settings(self) -> None:
        """App title should match app_name setting."""
        app = create_app({"app_name": "test-app", "testing": True})
        assert app.title == "test-app"

    def test_each_app_has_its_own_store(self) -> None:
        """Stores must not leak between application instances."""
        first = TestClient(create_app({"testing": True}))
        second = TestClient(create_app({"testing": True}))
        first.post("/api/v1/users", json={"name": "Ada", "email": "ada@example.com"})
        assert second.get("/api/v1/users").json()["content"]["items"] == []

    def test_create_app_enables_docs_in_testing_mode(self) -> None:
        """Docs endpoints should be enabled in testing mode."""
        app = create_app({"debug": False, "testing": True})
        assert app.docs_url == "/docs"

    def test_create_app_disables_docs_in_production(self) -> None:
        """Docs endpoints should be disabled when not in debug/testing."""
        app = create_app({"debug": False, "testing": False})
        assert app.docs_url is None
        assert app.redoc_url is None

    def test_missing_resource_file_fails(self, tmp_path) -> None:
        """A broken resource file should stop the application from starting."""
        with pytest.raises(ConfigurationError):
            create_app({"testing": True, "resources_file": str(tmp_path / "missing.yaml")})


class TestDeclaredEndpoints:
    """Tests for the consistency of declared and served endpoints."""

    def test_every_declared_endpoint_is_served(self, app: FastAPI) -> None:
        served = served_endpoints(app)
        for endpoint in app.state.resources.endpoints("v1"):
            assert (endpoint.method, endpoint.path) in served

    def test_undeclared_resource_warned(self, resources_yaml) -> None:
        path = resources_yaml("resources:\n  - name: tags\n")
        with patch("src.app.logger") as mock_logger:
            create_app({"testing": True, "resources_file": str(path)})
        messages = [c.args[0] for c in mock_logger.warning.call_args_list]
        assert "Declared endpoint is not served" in messages


class TestCorsMiddleware:
    """Tests for CORS middleware configuration."""

    def test_cors_allows_configured_origins(self, client: TestClient) -> None:
        """CORS should allow requests from configured origins."""
        response = client.get("/health", headers={"Origin": "http://localhost:3000"})
        assert response.headers.get("access-control-allow-origin") == "http://localhost:3000"

    def test_cors_exposes_envelope_headers(self, client: TestClient) -> None:
        """Clients in browsers need to read pagination and version headers."""
        response = client.get("/api/v1/users", headers={"Origin": "http://localhost:3000"})
        exposed = response.headers["access-control-expose-headers"]
        for header in ("X-Total-Count", "Link", "API-Version", "X-Request-ID"):
            assert header in exposed

    def test_preflight(self, client: TestClient) -> None:
        response = client.options(
            "/api/v1/users",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert response.status_code == 200
        assert "access-control-allow-origin" in response.headers


class TestRequestIdMiddleware:
    """Tests for request ID middleware."""

    def test_request_id_header_generated(self, client: TestClient) -> None:
        """Generated request ID should be in UUID format."""
        response = client.get("/health")
        parts = response.headers["x-request-id"].split("-")
        assert [len(p) for p in parts] == [8, 4, 4, 4, 12]

    def test_request_id_header_preserved(self, client: TestClient) -> None:
        """Provided request ID should be preserved in response."""
        response = client.get("/health", headers={"X-Request-ID": "test-request-id-12345"})
        assert response.headers["x-request-id"] == "test-request-id-12345"

    def test_request_id_on_error_responses(self, client: TestClient) -> None:
        """Error envelopes should also carry a request id."""
        response = client.get("/api/v1/users/999")
        assert response.status_code == 404
        assert "x-request-id" in response.headers


class TestUnexpectedErrors:
    """Tests for 500 responses passing through the middleware stack."""

    @pytest.fixture
    def failing_client(self, app: FastAPI) -> TestClient:
        """Client for an application with a versioned route that crashes."""

        @app.get("/api/v1/crash")
        def crash() -> None:
            raise RuntimeError("kaboom")

        return TestClient(app, raise_server_exceptions=False)

    def test_500_keeps_request_id_and_cors_headers(
        self, failing_client: TestClient, check_envelope
    ) -> None:
        response = failing_client.get(
            "/api/v1/crash",
            headers={"Origin": "http://localhost:3000", "X-Request-ID": "abc"},
        )
        assert response.status_code == 500
        assert response.headers["x-request-id"] == "abc"
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
        body = response.json()
        check_envelope(body, 500, False)
        assert body["error_details"][0]["code"] == int(ErrorCode.INTERNAL_ERROR)

    def test_500_written_to_access_log(self, failing_client: TestClient) -> None:
        with patch("src.app.logger") as mock_logger:
            failing_client.get("/api/v1/crash")
        call = mock_logger.info.call_args
        assert call.args[0] == "Request handled"
        assert call.kwargs["extra"]["status_code"] == 500


class TestOpenAPISchema:
    """Tests for OpenAPI schema availability."""

    def test_openapi_documents_versioned_resources(self, client: TestClient) -> None:
        """OpenAPI schema should list every versioned collection."""
        response = client.get("/openapi.json")
        assert response.status_code == 200
        paths = response.json()["paths"]
        assert "/health" in paths
        assert "/api/v1/users/{user_id}/homes/{home_id}" in paths
        assert "put" in paths["/api/v1/users/{user_id}/profile"]

    def test_openapi_documents_envelope(self, client: TestClient) -> None:
        schemas = client.get("/openapi.json").json()["components"]["schemas"]
        assert "ResponseEnvelope" in schemas


class TestLogging:
    """Tests for logging configuration."""

    def test_logging_uses_settings_log_level(self) -> None:
        """Logging should use the configured log level."""
        with patch("src.app.configure_logging") as mock_configure:
            create_app({"testing": True, "log_level": "WARNING", "debug": False})
            mock_configure.assert_called_once_with("WARNING", json_output=True)

    def test_debug_uses_plain_text_logs(self) -> None:
        with patch("src.app.configure_logging") as mock_configure:
            create_app({"testing": True, "debug": True})
            assert mock_configure.call_args.kwargs["json_output"] is False

    def test_lifespan_logs_startup_and_shutdown(self, app: FastAPI) -> None:
        with patch("src.app.logger") as mock_logger:
            with TestClient(app):
                pass
        messages = [c.args[0] for c in mock_logger.info.call_args_list]
        assert messages[0] == "Application starting"
        assert messages[-1] == "Application shutting down"

    def test_access_log_written(self, client: TestClient) -> None:
        with patch("src.app.logger") as mock_logger:
            client.get("/health")
        call = mock_logger.info.call_args
        assert call.args[0] == "Request handled"
        assert call.kwargs["extra"]["status_code"] == 200
        assert call.kwargs["extra"]["path"] == "/health"


class TestApiKeyMiddleware:
    """Tests for API key authentication middleware."""

    def test_health_endpoint_bypasses_api_key(
        self, make_client: Callable[..., TestClient]
    ) -> None:
        """Health endpoints must remain accessible without an API key."""
        client = make_client(api_key="secret")
        assert client.get("/health").status_code == 200
        assert client.get("/api/v1/health").status_code == 200

    def test_only_exact_health_paths_bypass_api_key(
        self, make_client: Callable[..., TestClient]
    ) -> None:
        """Paths merely ending in /health still need the key."""
        client = make_client(api_key="secret")
        response = client.get("/api/v1/users/health")
        assert response.status_code == 401
        assert response.json()["error_details"][0]["code"] == int(
            ErrorCode.AUTHENTICATION_REQUIRED
        )

    def test_missing_api_key_returns_401(
        self, make_client: Callable[..., TestClient], check_envelope
    ) -> None:
        """Request to a protected endpoint without X-API-Key returns 401."""
        response = make_client(api_key="secret").get("/api/v1/users")
        assert response.status_code == 401
        body = response.json()
        check_envelope(body, 401, False)
        assert body["error_details"][0]["code"] == int(ErrorCode.AUTHENTICATION_REQUIRED)

    def test_wrong_api_key_returns_401(self, make_client: Callable[..., TestClient]) -> None:
        """Request with an incorrect key is told apart by its error code."""
        response = make_client(api_key="secret").get(
            "/api/v1/users", headers={"X-API-Key": "wrong"}
        )
        assert response.status_code == 401
        assert response.json()["error_details"][0]["code"] == int(ErrorCode.INVALID_API_KEY)

    def test_correct_api_key_passes_through(
        self, make_client: Callable[..., TestClient]
    ) -> None:
        response = make_client(api_key="secret").get(
            "/api/v1/users", headers={"X-API-Key": "secret"}
        )
        assert response.status_code == 200

    def test_empty_api_key_disables_auth(self, client: TestClient) -> None:
        """When api_key is empty all endpoints are open."""
        assert client.get("/api/v1/users").status_code == 200


class TestWriteRateLimitMiddleware:
    """Tests for the per-IP write rate limiter."""

    def test_exceeding_limit_returns_429(
        self, make_client: Callable[..., TestClient], check_envelope
    ) -> None:
        """Writes beyond the configured limit should return 429."""
        client = make_client(rate_limit_writes=2)
        statuses = [
            client.post(
                "/api/v1/groups", json={"name": f"group-{i}"}
            ).status_code
            for i in range(3)
        ]
        assert statuses == [201, 201, 429]

        response = client.post("/api/v1/groups", json={"name": "late"})
        assert response.headers["retry-after"] == "60"
        body = response.json()
        check_envelope(body, 429, False)
        assert body["error_details"][0]["code"] == int(ErrorCode.RATE_LIMITED)

    def test_reads_not_rate_limited(self, make_client: Callable[..., TestClient]) -> None:
        """Rate limiter must not apply to GET endpoints."""
        client = make_client(rate_limit_writes=1)
        for _ in range(5):
            assert client.get("/api/v1/users").status_code == 200

    def test_rate_limit_zero_disables_limiter(self, client: TestClient) -> None:
        """rate_limit_writes=0 should disable the rate limiter entirely."""
        for i in range(20):
            response = client.post("/api/v1/groups", json={"name": f"group-{i}"})
            assert response.status_code == 201
