"""URL-path API versioning.

Versioned endpoints live under ``/api/v<N>/``. The version policy decides
which versions are served, which are deprecated, and which headers tell
clients about it.
"""

import re
from collections.abc import Awaitable, Callable
from typing import Iterable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.errors import ErrorCode, NotFoundError, error_response

API_PREFIX = "/api"
VERSION_HEADER = "API-Version"

_VERSION_PATTERN = re.compile(r"^v([1-9][0-9]*)$")


def parse_version(version: str) -> int:
    """Return the number of a version label.

    Example:
        >>> parse_version("v2")
        2

    Raises:
        ValueError: If the label is not ``v`` followed by a positive integer.
    """
    match = _VERSION_PATTERN.match(version)
    if match is None:
        raise ValueError(f"Invalid API version '{version}', expected e.g. 'v1'")
    return int(match.group(1))


def version_prefix(version: str) -> str:
    """Return the URL prefix of a version, e.g. ``/api/v1``."""
    parse_version(version)
    return f"{API_PREFIX}/{version}"


def version_from_path(path: str) -> str | None:
    """Return the version segment of an ``/api/...`` path.

    Returns None for paths outside ``/api``. The segment is returned as is,
    even when it is not a valid version label, so callers can reject it.

    Example:
        >>> version_from_path("/api/v1/users/3")
        'v1'
        >>> version_from_path("/health") is None
        True
    """
    parts = path.split("/")
    # "/api/v1/users" -> ["", "api", "v1", "users"]
    if len(parts) < 3 or parts[1] != API_PREFIX.strip("/") or not parts[2]:
        return None
    return parts[2]


class VersionPolicy:
    """Supported and deprecated API versions.

    Args:
        supported: Versions served by the API.
        deprecated: Subset of ``supported`` announced as deprecated.
        sunset: HTTP date at which deprecated versions stop being served.
    """

    def __init__(
        self,
        supported: Iterable[str],
        deprecated: Iterable[str] = (),
        sunset: str = "",
    ) -> None:
        self.supported = sorted(set(supported), key=parse_version)
        self.deprecated = set(deprecated)
        self.sunset = sunset
        if not self.supported:
            raise ValueError("At least one API version must be supported")
        unknown = self.deprecated - set(self.supported)
        if unknown:
            raise ValueError(f"Deprecated versions are not supported: {sorted(unknown)}")

    @property
    def latest(self) -> str:
        """Newest supported version."""
        return self.supported[-1]

    def is_supported(self, version: str) -> bool:
        return version in self.supported

    def check(self, version: str) -> None:
        """Reject versions the API does not serve.

        Raises:
            NotFoundError: UNSUPPORTED_API_VERSION for unknown versions.
        """
        if not self.is_supported(version):
            raise NotFoundError(
                f"API version '{version}' is not supported. "
                f"Supported versions: {', '.join(self.supported)}",
                code=ErrorCode.UNSUPPORTED_API_VERSION,
            )

    def headers_for(self, version: str, path: str = "") -> dict[str, str]:
        """Return the version headers of a response.

        Deprecated versions get ``Deprecation``, ``Sunset`` (when
        configured) and a ``successor-version`` link to the same path
        under the newest version.
        """
        headers = {VERSION_HEADER: version}
        if version in self.deprecated:
            headers["Deprecation"] = "true"
            if self.sunset:
                headers["Sunset"] = self.sunset
            if path:
                successor = path.replace(
                    version_prefix(version), version_prefix(self.latest), 1
                )
            else:
                successor = version_prefix(self.latest)
            headers["Link"] = f'<{successor}>; rel="successor-version"'
        return headers


class VersionMiddleware(BaseHTTPMiddleware):
    """Apply a version policy to every ``/api`` request.

    Unknown versions are answered with a 404 envelope before routing.
    Served versions get their headers added to the response.
    """

    def __init__(self, app: ASGIApp, policy: VersionPolicy) -> None:
        super().__init__(app)
        self.policy = policy

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        path = request.url.path
        version = version_from_path(path)
        if version is None:
            return await call_next(request)

        try:
            self.policy.check(version)
        except NotFoundError as exc:
            return error_response(exc)

        response = await call_next(request)
        for name, value in self.policy.headers_for(version, path).items():
            # Collection links already sit in "Link"; append rather than replace
            if name == "Link" and "Link" in response.headers:
                response.headers["Link"] = f"{response.headers['Link']}, {value}"
            else:
                response.headers[name] = value
        return response
