"""Home endpoints (one-to-many model).

Homes belong to exactly one user and are only reachable through their
owner: ``/users/{user_id}/homes/{home_id}``. A home id under the wrong
user is reported as not found.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Path, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.database.store import InMemoryStore
from src.logging_config import get_logger
from src.pagination import PageParams, get_page_params
from src.routes.shared import ENVELOPE_RESPONSES, get_store, respond, respond_page
from src.routes.users import UserId

logger = get_logger(__name__)

router = APIRouter(tags=["homes"])

HomeId = Annotated[int, Path(ge=1, description="Id of the home", examples=[1])]


class HomeWrite(BaseModel):
    """Request body creating or replacing a home.

    Attributes:
        address: Street address.
        city: City name.
        country: ISO 3166-1 alpha-2 country code.
    """

    address: Annotated[str, Field(min_length=1, max_length=200)]
    city: Annotated[str, Field(min_length=1, max_length=100)]
    country: Annotated[
        str,
        Field(min_length=2, max_length=2, pattern=r"^[A-Z]{2}$", examples=["NL"]),
    ]


class HomeResponse(BaseModel):
    id: int
    user_id: int
    address: str
    city: str
    country: str
    created_at: str
    updated_at: str


def _home_content(record: dict[str, Any]) -> HomeResponse:
    return HomeResponse.model_validate(record)


@router.get(
    "/users/{user_id}/homes",
    summary="List the user's homes",
    responses=ENVELOPE_RESPONSES,
)
def list_homes(
    request: Request,
    user_id: UserId,
    params: Annotated[PageParams, Depends(get_page_params)],
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    homes = [_home_content(h) for h in store.list_homes(user_id)]
    return respond_page(request, homes, params)


@router.post(
    "/users/{user_id}/homes",
    summary="Create a home for the user",
    status_code=status.HTTP_201_CREATED,
    responses=ENVELOPE_RESPONSES,
)
def create_home(
    user_id: UserId,
    home: HomeWrite,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    record = store.create_home(user_id, home.model_dump())
    logger.info("Home created", extra={"user_id": user_id, "home_id": record["id"]})
    return respond(_home_content(record), status_code=status.HTTP_201_CREATED)


@router.get(
    "/users/{user_id}/homes/{home_id}",
    summary="Get one of the user's homes",
    responses=ENVELOPE_RESPONSES,
)
def get_home(
    user_id: UserId,
    home_id: HomeId,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    return respond(_home_content(store.get_home(user_id, home_id)))


@router.put(
    "/users/{user_id}/homes/{home_id}",
    summary="Replace one of the user's homes",
    responses=ENVELOPE_RESPONSES,
)
def replace_home(
    user_id: UserId,
    home_id: HomeId,
    home: HomeWrite,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    record = store.update_home(user_id, home_id, home.model_dump())
    return respond(_home_content(record))


@router.delete(
    "/users/{user_id}/homes/{home_id}",
    summary="Delete one of the user's homes",
    responses=ENVELOPE_RESPONSES,
)
def delete_home(
    user_id: UserId,
    home_id: HomeId,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    store.delete_home(user_id, home_id)
    logger.info("Home deleted", extra={"user_id": user_id, "home_id": home_id})
    return respond()
