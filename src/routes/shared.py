"""Helpers shared across the route modules."""

from typing import Any, Sequence

from fastapi import Request
from fastapi.responses import JSONResponse

from src.database.store import InMemoryStore
from src.envelope import ResponseEnvelope, build_success, envelope_response
from src.pagination import PageParams, paginate, pagination_headers

# OpenAPI documentation of the envelope returned by every endpoint
ENVELOPE_RESPONSES: dict[int | str, dict[str, Any]] = {
    "default": {
        "model": ResponseEnvelope,
        "description": "Every response, successful or not, is a response envelope",
    },
}


def get_store(request: Request) -> InMemoryStore:
    """FastAPI dependency returning the application's store."""
    store: InMemoryStore = request.app.state.store
    return store


def respond(content: Any = None, status_code: int = 200) -> JSONResponse:
    """Return a successful envelope response."""
    return envelope_response(build_success(content, status_code=status_code))


def respond_page(
    request: Request,
    items: Sequence[Any],
    params: PageParams,
) -> JSONResponse:
    """Return one page of a collection with its ``Link`` and count headers."""
    page = paginate(items, params)
    return envelope_response(
        build_success(page.to_content()),
        headers=pagination_headers(request.url, page),
    )
