"""Group endpoints (base model) and memberships (many-to-many model).

Groups are a base model of their own. Memberships link users and groups
and can be walked from either side:

* ``/users/{user_id}/groups/{group_id}``
* ``/groups/{group_id}/users/{user_id}``

``PUT`` on a link creates it (201) or leaves an existing one untouched
(200). ``DELETE`` removes the link, never the linked resources.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Path, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.database.store import InMemoryStore
from src.logging_config import get_logger
from src.pagination import PageParams, get_page_params
from src.routes.shared import ENVELOPE_RESPONSES, get_store, respond, respond_page
from src.routes.users import UserId, UserResponse

logger = get_logger(__name__)

router = APIRouter(tags=["groups"])

GroupId = Annotated[int, Path(ge=1, description="Id of the group", examples=[1])]


class GroupWrite(BaseModel):
    """Request body creating or replacing a group.

    Attributes:
        name: Group name, unique across groups (case-insensitive).
        description: Optional free-form description.
    """

    name: Annotated[str, Field(min_length=1, max_length=100, examples=["climbers"])]
    description: Annotated[str | None, Field(default=None, max_length=500)]


class GroupResponse(BaseModel):
    id: int
    name: str
    description: str | None
    created_at: str
    updated_at: str


class MembershipResponse(BaseModel):
    user_id: int
    group_id: int


def _group_content(record: dict[str, Any]) -> GroupResponse:
    return GroupResponse.model_validate(record)


def _link(store: InMemoryStore, user_id: int, group_id: int) -> JSONResponse:
    created = store.link(user_id, group_id)
    if created:
        logger.info("Membership created", extra={"user_id": user_id, "group_id": group_id})
    return respond(
        MembershipResponse(user_id=user_id, group_id=group_id),
        status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
    )


def _unlink(store: InMemoryStore, user_id: int, group_id: int) -> JSONResponse:
    store.unlink(user_id, group_id)
    logger.info("Membership removed", extra={"user_id": user_id, "group_id": group_id})
    return respond()


@router.get("/groups", summary="List groups", responses=ENVELOPE_RESPONSES)
def list_groups(
    request: Request,
    params: Annotated[PageParams, Depends(get_page_params)],
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    groups = [_group_content(g) for g in store.list_groups()]
    return respond_page(request, groups, params)


@router.post(
    "/groups",
    summary="Create a group",
    status_code=status.HTTP_201_CREATED,
    responses=ENVELOPE_RESPONSES,
)
def create_group(
    group: GroupWrite,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    record = store.create_group(group.name, group.description)
    logger.info("Group created", extra={"group_id": record["id"]})
    return respond(_group_content(record), status_code=status.HTTP_201_CREATED)


@router.get("/groups/{group_id}", summary="Get a group", responses=ENVELOPE_RESPONSES)
def get_group(
    group_id: GroupId,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    return respond(_group_content(store.get_group(group_id)))


@router.put("/groups/{group_id}", summary="Replace a group", responses=ENVELOPE_RESPONSES)
def replace_group(
    group_id: GroupId,
    group: GroupWrite,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    record = store.update_group(group_id, group.name, group.description)
    return respond(_group_content(record))


@router.delete("/groups/{group_id}", summary="Delete a group", responses=ENVELOPE_RESPONSES)
def delete_group(
    group_id: GroupId,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    """Delete a group and its memberships. The members themselves stay."""
    store.delete_group(group_id)
    logger.info("Group deleted", extra={"group_id": group_id})
    return respond()


@router.get(
    "/users/{user_id}/groups",
    summary="List the user's groups",
    responses=ENVELOPE_RESPONSES,
)
def list_user_groups(
    request: Request,
    user_id: UserId,
    params: Annotated[PageParams, Depends(get_page_params)],
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    groups = [_group_content(g) for g in store.list_user_groups(user_id)]
    return respond_page(request, groups, params)


@router.put(
    "/users/{user_id}/groups/{group_id}",
    summary="Add the user to a group",
    responses=ENVELOPE_RESPONSES,
)
def link_user_group(
    user_id: UserId,
    group_id: GroupId,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    return _link(store, user_id, group_id)


@router.delete(
    "/users/{user_id}/groups/{group_id}",
    summary="Remove the user from a group",
    responses=ENVELOPE_RESPONSES,
)
def unlink_user_group(
    user_id: UserId,
    group_id: GroupId,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    return _unlink(store, user_id, group_id)


@router.get(
    "/groups/{group_id}/users",
    summary="List the group's users",
    responses=ENVELOPE_RESPONSES,
)
def list_group_users(
    request: Request,
    group_id: GroupId,
    params: Annotated[PageParams, Depends(get_page_params)],
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    users = [UserResponse.model_validate(u) for u in store.list_group_users(group_id)]
    return respond_page(request, users, params)


@router.put(
    "/groups/{group_id}/users/{user_id}",
    summary="Add a user to the group",
    responses=ENVELOPE_RESPONSES,
)
def link_group_user(
    group_id: GroupId,
    user_id: UserId,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    return _link(store, user_id, group_id)


@router.delete(
    "/groups/{group_id}/users/{user_id}",
    summary="Remove a user from the group",
    responses=ENVELOPE_RESPONSES,
)
def unlink_group_user(
    group_id: GroupId,
    user_id: UserId,
    store: Annotated[InMemoryStore, Depends(get_store)],
) -> JSONResponse:
    return _unlink(store, user_id, group_id)
