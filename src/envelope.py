"""Response envelope shared by every API response.

Every endpoint, successful or not, answers with the same top-level JSON
object::

    {
        "success": true,
        "status_code": 200,
        "status_text": "OK",
        "error_details": [],
        "content": {...}
    }

``status_code`` mirrors the HTTP status of the response. ``error_details``
is an ordered list of ``{code, text}`` pairs whose application codes
disambiguate errors that share one HTTP status.
"""

from http import HTTPStatus
from typing import Any, Iterable, Sequence

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, model_validator

UNKNOWN_STATUS_TEXT = "Unknown Status"


class ErrorDetail(BaseModel):
    """A single application error.

    Attributes:
        code: Application-specific error code.
        text: Human-readable description of the error.
    """

    code: int = Field(ge=1)
    text: str = Field(min_length=1)

    model_config = ConfigDict(frozen=True)


class ResponseEnvelope(BaseModel):
    """Top-level wrapper of every API response.

    Attributes:
        success: True for 2xx and 3xx statuses, False otherwise.
        status_code: HTTP status code of the response.
        status_text: Human-readable status, the HTTP reason phrase by default.
        error_details: Ordered application errors. Empty on success.
        content: Response payload, always a JSON object or array.
    """

    success: bool
    status_code: int = Field(ge=100, le=599)
    status_text: str = ""
    error_details: list[ErrorDetail] = Field(default_factory=list)
    content: dict[str, Any] | list[Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "status_code": 404,
                "status_text": "Not Found",
                "error_details": [{"code": 1200, "text": "User 7 not found"}],
                "content": {},
            }
        }
    )

    @model_validator(mode="after")
    def check_consistency(self) -> "ResponseEnvelope":
        """Keep ``success``, ``status_code`` and ``error_details`` in agreement.

        Raises:
            ValueError: If the flags contradict each other.
        """
        if self.success != is_success_status(self.status_code):
            raise ValueError(
                f"success={self.success} does not match status_code={self.status_code}"
            )
        if self.success and self.error_details:
            raise ValueError("A successful response cannot carry error details")
        if not self.success and not self.error_details:
            raise ValueError("A failed response needs at least one error detail")
        if not self.status_text:
            self.status_text = default_status_text(self.status_code)
        return self


def is_success_status(status_code: int) -> bool:
    """Return True for statuses reported with ``success: true``."""
    return 200 <= status_code < 400


def default_status_text(status_code: int) -> str:
    """Return the HTTP reason phrase for a status code.

    Example:
        >>> default_status_text(404)
        'Not Found'
    """
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return UNKNOWN_STATUS_TEXT


def _encode_content(content: Any) -> dict[str, Any] | list[Any]:
    """Convert a payload to a JSON object or array.

    Raises:
        ValueError: If the payload encodes to a scalar.
    """
    if content is None:
        return {}
    encoded = jsonable_encoder(content)
    if not isinstance(encoded, (dict, list)):
        raise ValueError(
            f"Envelope content must be an object or array, got {type(encoded).__name__}"
        )
    return encoded


def _coerce_details(
    details: Iterable[ErrorDetail | tuple[int, str]],
) -> list[ErrorDetail]:
    result = []
    for item in details:
        if isinstance(item, ErrorDetail):
            result.append(item)
        else:
            code, text = item
            result.append(ErrorDetail(code=int(code), text=text))
    return result


def build_success(
    content: Any = None,
    status_code: int = 200,
    status_text: str | None = None,
) -> ResponseEnvelope:
    """Build a successful envelope.

    Args:
        content: Payload. Pydantic models, dicts and lists are accepted.
            None becomes an empty object.
        status_code: 2xx or 3xx HTTP status.
        status_text: Optional override of the reason phrase.

    Returns:
        The envelope.

    Raises:
        ValueError: If ``status_code`` is not a success status or the
            content is not an object or array.

    Example:
        >>> build_success({"id": 1}, status_code=201).status_text
        'Created'
    """
    return ResponseEnvelope(
        success=True,
        status_code=status_code,
        status_text=status_text or "",
        content=_encode_content(content),
    )


def build_error(
    status_code: int,
    error_details: Sequence[ErrorDetail | tuple[int, str]],
    status_text: str | None = None,
    content: Any = None,
) -> ResponseEnvelope:
    """Build a failure envelope.

    Args:
        status_code: 4xx or 5xx HTTP status.
        error_details: Application errors, in the order they should be
            reported. ``(code, text)`` tuples are accepted.
        status_text: Optional override of the reason phrase.
        content: Optional payload, empty object by default.

    Returns:
        The envelope.

    Raises:
        ValueError: If ``status_code`` is a success status or no detail
            is given.
    """
    return ResponseEnvelope(
        success=False,
        status_code=status_code,
        status_text=status_text or "",
        error_details=_coerce_details(error_details),
        content=_encode_content(content),
    )


def envelope_response(
    envelope: ResponseEnvelope,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Render an envelope as a JSON response with a matching HTTP status.

    Args:
        envelope: The envelope to send.
        headers: Optional extra response headers.

    Returns:
        JSONResponse whose status equals ``envelope.status_code``.
    """
    return JSONResponse(
        status_code=envelope.status_code,
        content=envelope.model_dump(mode="json"),
        headers=headers,
    )
