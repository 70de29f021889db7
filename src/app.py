"""FastAPI application factory.

This module provides the application factory pattern for creating
configured FastAPI instances with all middleware and routes.
"""

import threading
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute

from src.config import Settings, get_settings, get_settings_override
from src.database.store import InMemoryStore
from src.errors import (
    ApiError,
    ErrorCode,
    error_response,
    register_exception_handlers,
    unexpected_error_response,
)
from src.logging_config import configure_logging, get_logger, request_id_var
from src.resources import ResourceRegistry, load_resource_specs
from src.routes import VERSIONED_ROUTERS, health_router
from src.versioning import VersionMiddleware, VersionPolicy, version_prefix

logger = get_logger(__name__)

_HEALTH_PATH = "/health"

_WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class _WriteRateLimiter:
    """Thread-safe sliding-window rate limiter for write requests.

    Tracks request timestamps per client IP in a 60-second window.
    A fresh instance is created for each application instance so that
    test isolation is guaranteed when :func:`create_app` is called repeatedly.
    """

    WINDOW_SECONDS: int = 60

    def __init__(self) -> None:
        self._timestamps: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def is_allowed(self, client_ip: str, max_requests: int) -> bool:
        """Return True if the request is within the rate limit.

        Args:
            client_ip: Identifier for the client (typically remote IP).
            max_requests: Maximum allowed requests per window.

        Returns:
            True if the request is allowed; False if the limit is exceeded.
        """
        now = time.monotonic()
        cutoff = now - self.WINDOW_SECONDS
        with self._lock:
            timestamps = [t for t in self._timestamps.get(client_ip, []) if t > cutoff]
            if len(timestamps) >= max_requests:
                self._timestamps[client_ip] = timestamps
                return False
            timestamps.append(now)
            self._timestamps[client_ip] = timestamps
            return True


def _health_paths(settings: Settings) -> frozenset[str]:
    """Return the exact health-check paths, which bypass API key checks."""
    paths = {_HEALTH_PATH}
    paths.update(f"{version_prefix(v)}{_HEALTH_PATH}" for v in settings.api_versions)
    return frozenset(paths)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan context manager.

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application lifetime.
    """
    # Startup
    logger.info(
        "Application starting",
        extra={
            "app_name": app.state.settings.app_name,
            "version": app.state.settings.app_version,
            "api_versions": app.state.settings.api_versions,
        },
    )
    yield
    # Shutdown
    logger.info("Application shutting down")


def create_app(config_override: dict[str, Any] | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config_override: Optional dictionary to override default
            configuration values. Used primarily for testing.

    Returns:
        Configured FastAPI application instance ready to serve requests.

    Raises:
        ConfigurationError: If the resource file cannot be loaded.

    Example:
        >>> app = create_app()
        >>> # For testing with custom config
        >>> test_app = create_app({"debug": True, "testing": True})
    """
    if config_override:
        settings = get_settings_override(config_override)
    else:
        settings = get_settings()

    json_output = not settings.debug
    configure_logging(settings.log_level, json_output=json_output)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Reference REST API following the response envelope conventions",
        docs_url="/docs" if settings.debug or settings.testing else None,
        redoc_url="/redoc" if settings.debug or settings.testing else None,
        openapi_url="/openapi.json" if settings.debug or settings.testing else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = InMemoryStore()
    app.state.resources = load_resource_specs(settings.resources_file)

    register_exception_handlers(app)
    _configure_middleware(app, settings)
    _register_routes(app, settings)
    _check_declared_endpoints(app, app.state.resources, settings.api_versions)

    return app


def _configure_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure application middleware.

    Middleware added later wraps the earlier ones, so request ids and
    access logs cover every response, including authentication and rate
    limit failures. Unexpected exceptions are turned into envelopes by the
    innermost middleware, so those responses get the same treatment.

    Args:
        app: FastAPI application instance.
        settings: Application settings.
    """

    @app.middleware("http")
    async def catch_unexpected_errors(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Render exceptions no handler took care of as 500 envelopes."""
        try:
            return await call_next(request)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            return unexpected_error_response(request, exc)

    policy = VersionPolicy(
        settings.api_versions,
        settings.deprecated_api_versions,
        settings.api_sunset,
    )
    app.add_middleware(VersionMiddleware, policy=policy)

    # Write rate-limit middleware (per-IP sliding window, 60 s)
    write_rate_limiter = _WriteRateLimiter()
    health_paths = _health_paths(settings)

    @app.middleware("http")
    async def rate_limit_writes(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Rate-limit write requests under ``/api``.

        Disabled when ``settings.rate_limit_writes`` is 0.
        """
        max_requests = settings.rate_limit_writes
        if (
            max_requests > 0
            and request.method in _WRITE_METHODS
            and request.url.path.startswith("/api/")
        ):
            client_ip = request.client.host if request.client else "unknown"
            if not write_rate_limiter.is_allowed(client_ip, max_requests):
                logger.warning("Write rate limit exceeded", extra={"client_ip": client_ip})
                return error_response(
                    ApiError.from_code(
                        ErrorCode.RATE_LIMITED,
                        headers={"Retry-After": str(_WriteRateLimiter.WINDOW_SECONDS)},
                    )
                )
        return await call_next(request)

    @app.middleware("http")
    async def api_key_auth(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Enforce API key authentication on non-health endpoints.

        Skips authentication when ``settings.api_key`` is empty (open mode)
        or when the request targets a health-check path. A missing key and
        a wrong key are both 401, told apart by their error codes.
        """
        if settings.api_key and request.url.path not in health_paths:
            provided_key = request.headers.get("X-API-Key", "")
            if not provided_key:
                return error_response(ApiError.from_code(ErrorCode.AUTHENTICATION_REQUIRED))
            if provided_key != settings.api_key:
                return error_response(ApiError.from_code(ErrorCode.INVALID_API_KEY))
        return await call_next(request)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-Total-Count",
            "Link",
            "API-Version",
            "Deprecation",
            "Sunset",
        ],
    )

    @app.middleware("http")
    async def access_log(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Log method, path, status and duration of every request."""
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "Request handled",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return response

    @app.middleware("http")
    async def add_request_id(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Add unique request ID to each request for tracing.

        If the request includes an X-Request-ID header, it will be
        preserved. Otherwise, a new UUID is generated. The id is attached
        to every log record written while the request is served.
        """
        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response: Response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response


def _register_routes(app: FastAPI, settings: Settings) -> None:
    """Register all API routes.

    Args:
        app: FastAPI application instance.
        settings: Application settings.
    """
    # Root-level health check
    app.include_router(health_router)

    for version in settings.api_versions:
        prefix = version_prefix(version)
        for router in VERSIONED_ROUTERS:
            app.include_router(router, prefix=prefix)


def served_endpoints(app: FastAPI) -> set[tuple[str, str]]:
    """Return the ``(method, path)`` pairs the application routes."""
    served = set()
    for route in app.routes:
        if isinstance(route, APIRoute):
            for method in route.methods:
                served.add((method, route.path))
    return served


def _check_declared_endpoints(
    app: FastAPI, registry: ResourceRegistry, versions: list[str]
) -> None:
    """Warn about declared resources the application does not serve."""
    for problem in registry.naming_problems():
        logger.warning("Resource naming problem", extra={"problem": problem})

    served = served_endpoints(app)
    for version in versions:
        for endpoint in registry.endpoints(version):
            if (endpoint.method, endpoint.path) not in served:
                logger.warning(
                    "Declared endpoint is not served",
                    extra={"method": endpoint.method, "path": endpoint.path},
                )


# Create default app instance for uvicorn
# Usage: uvicorn src.app:application --reload
# Or with factory: uvicorn src.app:create_app --factory --reload
application = create_app()
