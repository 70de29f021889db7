"""User profile endpoints (one-to-one model).

A user has at most one profile, so the profile has no id of its own:
``/users/{user_id}/profile``. ``PUT`` creates it or replaces it.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from src.database.store import InMemoryStore
from src.routes.shared import ENVELOPE_RESPONSES, get_store, respond
from src.routes.users import UserId

router = APIRouter(tags=["profile"])

BIO_MAX_LENGTH = 1000
AVATAR_URL_MAX_LENGTH = 2048


class ProfileWrite(BaseModel):
    """Request body of ``PUT /users/{user_id}/profile``.

    Attributes:
        bio: Free-form description.
        avatar_url: Optional HTTPS URL of the user's picture.
    """

    bio: Annotated[str, Field(default="", max_length=BIO_MAX_LENGTH)]
    avatar_url: Annotated[
        str | None,
        Field(
            default=None,
            max_length=AVATAR_URL_MAX_LENGTH,
            examples=["https://example.com/avatars/ada.png"],
        ),
    ]

    @field_validator("avatar_url")
    @classmethod
    def validate_avatar_url(cls, v: str | None) -> str | None:
        """Require the HTTPS scheme.

        Raises:
            ValueError: If the URL is not an HTTPS URL.
        """
        if v is not None and not v.startswith("https://"):
            raise ValueError("Avatar URL must use HTTPS scheme")
        return v


class ProfileResponse(BaseModel):
    user_id: int
    bio: str
    avatar_url: str | None
    created_at: str
    updated_at: str


def _profile_content(record: dict[str, Any]) -> ProfileResponse:
    return ProfileResponse.model_validate(record)


@router.get(
    "/users/{user_id}/profile",
    summary="Get the user's profile",
    responses=ENVELOPE_RESPONSES,
)
def get_profile(
    user_id: UserId,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    return respond(_profile_content(store.get_profile(user_id)))


@router.put(
    "/users/{user_id}/profile",
    summary="Create or replace the user's profile",
    responses=ENVELOPE_RESPONSES,
)
def put_profile(
    user_id: UserId,
    profile: ProfileWrite,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    """Create the profile (201) or replace it (200)."""
    record, created = store.put_profile(user_id, profile.model_dump())
    status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return respond(_profile_content(record), status_code=status_code)


@router.delete(
    "/users/{user_id}/profile",
    summary="Delete the user's profile",
    responses=ENVELOPE_RESPONSES,
)
def delete_profile(
    user_id: UserId,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    store.delete_profile(user_id)
    return respond()
