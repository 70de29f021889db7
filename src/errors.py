"""Application error codes, exception hierarchy and FastAPI handlers.

All API exceptions derive from :class:`ApiError`, so route handlers and the
data layer raise them freely and the registered handlers turn them into
response envelopes. Framework errors (unknown routes, request validation,
unexpected exceptions) are converted to the same envelope shape.
"""

from enum import IntEnum
from typing import Any, Iterable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.envelope import ErrorDetail, build_error, envelope_response
from src.logging_config import get_logger

logger = get_logger(__name__)


class ErrorCode(IntEnum):
    """Application error codes.

    Codes sharing one HTTP status tell clients which failure occurred,
    e.g. a missing API key and a wrong one are both 401.
    """

    INTERNAL_ERROR = 1000
    VALIDATION_FAILED = 1001
    MALFORMED_REQUEST = 1002
    INVALID_PAGINATION = 1003
    AUTHENTICATION_REQUIRED = 1100
    INVALID_API_KEY = 1101
    RESOURCE_NOT_FOUND = 1200
    ROUTE_NOT_FOUND = 1201
    UNSUPPORTED_API_VERSION = 1202
    METHOD_NOT_ALLOWED = 1300
    DUPLICATE_RESOURCE = 1400
    RATE_LIMITED = 1500

    @property
    def http_status(self) -> int:
        """Default HTTP status reported with this code."""
        return _CODE_TABLE[self][0]

    @property
    def default_text(self) -> str:
        """Default human-readable text for this code."""
        return _CODE_TABLE[self][1]


_CODE_TABLE: dict[ErrorCode, tuple[int, str]] = {
    ErrorCode.INTERNAL_ERROR: (500, "An unexpected error occurred"),
    ErrorCode.VALIDATION_FAILED: (422, "Request validation failed"),
    ErrorCode.MALFORMED_REQUEST: (400, "Malformed request"),
    ErrorCode.INVALID_PAGINATION: (400, "Invalid pagination parameters"),
    ErrorCode.AUTHENTICATION_REQUIRED: (401, "Authentication required"),
    ErrorCode.INVALID_API_KEY: (401, "Invalid API key"),
    ErrorCode.RESOURCE_NOT_FOUND: (404, "Resource not found"),
    ErrorCode.ROUTE_NOT_FOUND: (404, "No endpoint matches this path"),
    ErrorCode.UNSUPPORTED_API_VERSION: (404, "Unsupported API version"),
    ErrorCode.METHOD_NOT_ALLOWED: (405, "Method not allowed for this endpoint"),
    ErrorCode.DUPLICATE_RESOURCE: (409, "Resource already exists"),
    ErrorCode.RATE_LIMITED: (429, "Rate limit exceeded. Please try again later."),
}

# Codes reported for bare HTTP statuses raised by the framework
_STATUS_TO_CODE: dict[int, ErrorCode] = {
    400: ErrorCode.MALFORMED_REQUEST,
    401: ErrorCode.AUTHENTICATION_REQUIRED,
    404: ErrorCode.ROUTE_NOT_FOUND,
    405: ErrorCode.METHOD_NOT_ALLOWED,
    409: ErrorCode.DUPLICATE_RESOURCE,
    422: ErrorCode.VALIDATION_FAILED,
    429: ErrorCode.RATE_LIMITED,
}


class ApiError(Exception):
    """Base class for errors reported to API clients.

    Attributes:
        status_code: HTTP status of the error response.
        details: Ordered application errors.
        headers: Extra response headers, e.g. ``Retry-After``.

    Example:
        >>> raise ApiError(404, [ErrorDetail(code=1200, text="User 7 not found")])
    """

    def __init__(
        self,
        status_code: int,
        details: Iterable[ErrorDetail],
        headers: dict[str, str] | None = None,
    ) -> None:
        """Initialize ApiError.

        Args:
            status_code: HTTP status, 4xx or 5xx.
            details: At least one application error.
            headers: Optional extra response headers.

        Raises:
            ValueError: If no detail is given or the status is not an error.
        """
        self.status_code = status_code
        self.details = list(details)
        self.headers = headers
        if not self.details:
            raise ValueError("ApiError needs at least one error detail")
        if status_code < 400:
            raise ValueError(f"ApiError status must be 4xx or 5xx, got {status_code}")
        super().__init__("; ".join(detail.text for detail in self.details))

    @classmethod
    def from_code(
        cls,
        code: ErrorCode,
        text: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> "ApiError":
        """Build an error from an application code and its default status."""
        detail = ErrorDetail(code=int(code), text=text or code.default_text)
        return cls(code.http_status, [detail], headers=headers)


class _FixedStatusError(ApiError):
    """ApiError subclass whose HTTP status is fixed by the class."""

    http_status: int = 500
    default_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        text: str | None = None,
        code: ErrorCode | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        code = code or self.default_code
        detail = ErrorDetail(code=int(code), text=text or code.default_text)
        super().__init__(self.http_status, [detail], headers=headers)


class BadRequestError(_FixedStatusError):
    """400 Bad Request."""

    http_status = 400
    default_code = ErrorCode.MALFORMED_REQUEST


class UnauthorizedError(_FixedStatusError):
    """401 Unauthorized."""

    http_status = 401
    default_code = ErrorCode.AUTHENTICATION_REQUIRED


class NotFoundError(_FixedStatusError):
    """404 Not Found."""

    http_status = 404
    default_code = ErrorCode.RESOURCE_NOT_FOUND


class ConflictError(_FixedStatusError):
    """409 Conflict."""

    http_status = 409
    default_code = ErrorCode.DUPLICATE_RESOURCE


def error_from_http_status(status_code: int, text: str | None = None) -> ApiError:
    """Map a bare HTTP status to an ApiError with an application code.

    Statuses without a dedicated code fall back to INTERNAL_ERROR for 5xx
    and MALFORMED_REQUEST for 4xx, keeping the original status.
    """
    code = _STATUS_TO_CODE.get(status_code)
    if code is None:
        code = ErrorCode.INTERNAL_ERROR if status_code >= 500 else ErrorCode.MALFORMED_REQUEST
    detail = ErrorDetail(code=int(code), text=text or code.default_text)
    return ApiError(status_code, [detail])


def error_response(error: ApiError) -> JSONResponse:
    """Render an ApiError as an envelope response."""
    return envelope_response(
        build_error(error.status_code, error.details),
        headers=error.headers,
    )


def _format_location(loc: Iterable[Any]) -> str:
    return ".".join(str(part) for part in loc)


def validation_details(exc: RequestValidationError) -> list[ErrorDetail]:
    """Convert request validation errors to ordered error details.

    Example:
        A missing ``email`` body field yields
        ``ErrorDetail(code=1001, text="body.email: Field required")``.
    """
    details = []
    for error in exc.errors():
        location = _format_location(error.get("loc", ()))
        message = error.get("msg", ErrorCode.VALIDATION_FAILED.default_text)
        text = f"{location}: {message}" if location else message
        details.append(ErrorDetail(code=int(ErrorCode.VALIDATION_FAILED), text=text))
    if not details:
        details.append(
            ErrorDetail(
                code=int(ErrorCode.VALIDATION_FAILED),
                text=ErrorCode.VALIDATION_FAILED.default_text,
            )
        )
    return details


def unexpected_error_response(request: Request, exc: Exception) -> JSONResponse:
    """Log an unhandled exception and render it as a 500 envelope.

    The exception text is only shown in debug or testing mode.
    """
    logger.exception(
        "Unhandled error",
        extra={
            "path": request.url.path,
            "error": str(exc),
            "error_type": type(exc).__name__,
        },
    )
    settings = request.app.state.settings
    if settings.debug or settings.testing:
        text = f"Unexpected error: {exc!s}"
    else:
        text = ErrorCode.INTERNAL_ERROR.default_text
    return error_response(ApiError.from_code(ErrorCode.INTERNAL_ERROR, text))


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers converting every failure into an envelope.

    Args:
        app: FastAPI application instance.
    """

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        logger.info(
            "API error",
            extra={
                "path": request.url.path,
                "status_code": exc.status_code,
                "codes": [detail.code for detail in exc.details],
            },
        )
        return error_response(exc)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        text = exc.detail if isinstance(exc.detail, str) else None
        # Starlette's own 404/405 texts are the bare reason phrase
        if exc.status_code in (404, 405):
            text = None
        error = error_from_http_status(exc.status_code, text)
        error.headers = getattr(exc, "headers", None)
        return error_response(error)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = validation_details(exc)
        logger.info(
            "Request validation failed",
            extra={"path": request.url.path, "error_count": len(details)},
        )
        return envelope_response(build_error(422, details))

    # Last resort for failures raised by the middleware itself
    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        return unexpected_error_response(request, exc)
