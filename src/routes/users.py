"""User endpoints (base model).

Users are addressable on their own, ``/users/{user_id}``. Profiles, homes
and group memberships hang below a user.
"""

import re
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Path, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from src.database.store import InMemoryStore
from src.logging_config import get_logger
from src.pagination import PageParams, get_page_params
from src.routes.shared import ENVELOPE_RESPONSES, get_store, respond, respond_page

logger = get_logger(__name__)

router = APIRouter(tags=["users"])

# Constants
NAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 254
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

UserId = Annotated[int, Path(ge=1, description="Id of the user", examples=[1])]


class UserWrite(BaseModel):
    """Request body creating or replacing a user.

    Attributes:
        name: Display name.
        email: Contact email, unique across users (case-insensitive).
    """

    name: Annotated[str, Field(min_length=1, max_length=NAME_MAX_LENGTH, examples=["Ada"])]
    email: Annotated[
        str,
        Field(min_length=3, max_length=EMAIL_MAX_LENGTH, examples=["ada@example.com"]),
    ]

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Strip surrounding whitespace and reject blank names."""
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Check the address has a local part, an ``@`` and a domain."""
        if not _EMAIL_PATTERN.match(v):
            raise ValueError("Email must look like 'name@example.com'")
        return v


class UserResponse(BaseModel):
    """User as returned in envelope content."""

    id: int
    name: str
    email: str
    created_at: str
    updated_at: str


def _user_content(record: dict[str, Any]) -> UserResponse:
    return UserResponse.model_validate(record)


@router.get("/users", summary="List users", responses=ENVELOPE_RESPONSES)
def list_users(
    request: Request,
    params: Annotated[PageParams, Depends(get_page_params)],
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    """Return one page of users, ordered by id."""
    users = [_user_content(u) for u in store.list_users()]
    return respond_page(request, users, params)


@router.post(
    "/users",
    summary="Create a user",
    status_code=status.HTTP_201_CREATED,
    responses=ENVELOPE_RESPONSES,
)
def create_user(
    user: UserWrite,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    """Create a user.

    Raises:
        ConflictError: 409 DUPLICATE_RESOURCE if the email is taken.

    Example:
        ```bash
        curl -X POST "http://localhost:8000/api/v1/users" \\
             -H "Content-Type: application/json" \\
             -d '{"name": "Ada", "email": "ada@example.com"}'
        ```
    """
    record = store.create_user(user.name, user.email)
    logger.info("User created", extra={"user_id": record["id"]})
    return respond(_user_content(record), status_code=status.HTTP_201_CREATED)


@router.get("/users/{user_id}", summary="Get a user", responses=ENVELOPE_RESPONSES)
def get_user(
    user_id: UserId,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    """Return one user, 404 RESOURCE_NOT_FOUND if unknown."""
    return respond(_user_content(store.get_user(user_id)))


@router.put("/users/{user_id}", summary="Replace a user", responses=ENVELOPE_RESPONSES)
def replace_user(
    user_id: UserId,
    user: UserWrite,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    """Replace a user's fields."""
    record = store.update_user(user_id, user.name, user.email)
    logger.info("User updated", extra={"user_id": user_id})
    return respond(_user_content(record))


@router.delete("/users/{user_id}", summary="Delete a user", responses=ENVELOPE_RESPONSES)
def delete_user(
    user_id: UserId,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    """Delete a user together with its profile, homes and memberships."""
    store.delete_user(user_id)
    logger.info("User deleted", extra={"user_id": user_id})
    return respond()
