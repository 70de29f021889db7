"""Page-number pagination for collection endpoints.

Collections are requested with ``?page=N&per_page=M``. The response
content is ``{"items": [...], "pagination": {...}}`` and the response
carries a ``Link`` header (RFC 8288) and an ``X-Total-Count`` header.
"""

import math
from typing import Any, Generic, Sequence, TypeVar

from fastapi import Query, Request
from pydantic import BaseModel, Field
from starlette.datastructures import URL

from src.errors import BadRequestError, ErrorCode

T = TypeVar("T")

TOTAL_COUNT_HEADER = "X-Total-Count"


class PageParams(BaseModel):
    """Validated pagination parameters.

    Attributes:
        page: 1-based page number.
        per_page: Number of items per page.
    """

    page: int = Field(default=1, ge=1)
    per_page: int = Field(default=20, ge=1)

    @property
    def offset(self) -> int:
        """Index of the first item of the page."""
        return (self.page - 1) * self.per_page


class Page(BaseModel, Generic[T]):
    """One page of a collection.

    Attributes:
        items: Items on this page. Empty for pages past the end.
        page: 1-based page number.
        per_page: Requested page size.
        total_items: Size of the whole collection.
        total_pages: Number of pages, at least 1.
    """

    items: list[T]
    page: int
    per_page: int
    total_items: int
    total_pages: int

    def to_content(self) -> dict[str, Any]:
        """Return the envelope content of this page."""
        return {
            "items": self.items,
            "pagination": {
                "page": self.page,
                "per_page": self.per_page,
                "total_items": self.total_items,
                "total_pages": self.total_pages,
            },
        }


def count_pages(total_items: int, per_page: int) -> int:
    """Return the number of pages, at least 1 even for an empty collection."""
    return max(1, math.ceil(total_items / per_page))


def paginate(items: Sequence[T], params: PageParams) -> Page[T]:
    """Slice a sequence into the requested page.

    Args:
        items: The whole collection, already ordered.
        params: Requested page.

    Returns:
        The page. Pages past the end have no items.

    Example:
        >>> paginate(list(range(45)), PageParams(page=3, per_page=20)).items
        [40, 41, 42, 43, 44]
    """
    total = len(items)
    start = params.offset
    return Page(
        items=list(items[start : start + params.per_page]),
        page=params.page,
        per_page=params.per_page,
        total_items=total,
        total_pages=count_pages(total, params.per_page),
    )


def get_page_params(
    request: Request,
    page: int | None = Query(default=None, description="1-based page number"),
    per_page: int | None = Query(default=None, description="Items per page"),
) -> PageParams:
    """FastAPI dependency reading ``page`` and ``per_page``.

    Defaults and the upper bound come from the application settings.
    Out-of-range values are reported as 400 INVALID_PAGINATION rather
    than 422, since they are well-formed but unacceptable.

    Raises:
        BadRequestError: If a parameter is out of range.
    """
    settings = request.app.state.settings
    page = 1 if page is None else page
    per_page = settings.default_page_size if per_page is None else per_page

    if page < 1:
        raise BadRequestError(
            f"page must be at least 1, got {page}",
            code=ErrorCode.INVALID_PAGINATION,
        )
    if not 1 <= per_page <= settings.max_page_size:
        raise BadRequestError(
            f"per_page must be between 1 and {settings.max_page_size}, got {per_page}",
            code=ErrorCode.INVALID_PAGINATION,
        )
    return PageParams(page=page, per_page=per_page)


def build_link_header(url: URL | str, page: Page[Any]) -> str:
    """Build an RFC 8288 ``Link`` header for a page.

    ``first`` and ``last`` are always present, ``prev`` and ``next`` only
    when such a page exists. Other query parameters of ``url`` are kept.

    Example:
        >>> build_link_header("http://api/users?page=2&per_page=10", page)
        '<http://api/users?page=1&per_page=10>; rel="first", ...'
    """
    base = URL(str(url))

    def link(number: int, rel: str) -> str:
        target = base.include_query_params(page=number, per_page=page.per_page)
        return f'<{target}>; rel="{rel}"'

    links = [link(1, "first")]
    if page.page > 1:
        links.append(link(min(page.page - 1, page.total_pages), "prev"))
    if page.page < page.total_pages:
        links.append(link(page.page + 1, "next"))
    links.append(link(page.total_pages, "last"))
    return ", ".join(links)


def pagination_headers(url: URL | str, page: Page[Any]) -> dict[str, str]:
    """Return the ``Link`` and ``X-Total-Count`` headers of a page."""
    return {
        "Link": build_link_header(url, page),
        TOTAL_COUNT_HEADER: str(page.total_items),
    }
