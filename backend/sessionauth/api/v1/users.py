"""User endpoints: listing, self update, admin update and delete."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from sessionauth.api.deps import (
    get_store,
    require_admin,
    require_authed,
    require_fresh_auth,
    stage_cookie_clear,
)
from sessionauth.api.v1.auth import MIN_PASSWORD_LENGTH
from sessionauth.core.auth import hash_password
from sessionauth.core.permissions import ensure_admin
from sessionauth.core.session_rotation import AuthContext
from sessionauth.services.session_store import DuplicateUserNameError, SessionStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["users"])


class UserOut(BaseModel):
    id: str
    name: str


class UpdateMeBody(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    password: str | None = Field(default=None, alias="pass", min_length=MIN_PASSWORD_LENGTH)


class UpdateUserBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str | None = Field(default=None, min_length=1, max_length=255)
    password: str | None = Field(default=None, alias="pass", min_length=MIN_PASSWORD_LENGTH)
    is_admin: bool | None = Field(default=None, alias="isAdmin")


@router.get(
    "/get_users",
    response_model=list[UserOut],
    summary="List users (non-admins only see non-admin users)",
    responses={401: {"description": "Not authenticated"}},
)
async def get_users(
    store: Annotated[SessionStore, Depends(get_store)],
    user: Annotated[AuthContext, Depends(require_authed)],
) -> list[UserOut]:
    users = await store.list_users(include_admins=user.is_admin)
    return [UserOut(id=u.id, name=u.name) for u in users]


@router.put(
    "/update_me",
    summary="Change own name or password",
    responses={
        400: {"description": "Name already registered"},
        401: {"description": "Not authenticated, or tokens were just refreshed"},
    },
)
async def update_me(
    request: Request,
    store: Annotated[SessionStore, Depends(get_store)],
    user: Annotated[AuthContext, Depends(require_fresh_auth)],
    body: UpdateMeBody,
) -> dict:
    """Password change ends the current session; the client has to log in again."""
    target = await store.find_user(user.id)
    if target is None:
        raise HTTPException(status_code=404, detail="User not found")
    try:
        await store.update_user(
            target,
            name=body.name,
            password_hash=hash_password(body.password) if body.password else None,
        )
    except DuplicateUserNameError as e:
        raise HTTPException(status_code=400, detail="Name already registered") from e
    if body.password:
        await store.delete_session(user.id)
        stage_cookie_clear(request)
    return {}


@router.put(
    "/update_user",
    summary="Update any user (admin). Everything except id is optional",
    responses={
        400: {"description": "Name already registered"},
        401: {"description": "Not an administrator"},
        404: {"description": "User not found"},
    },
)
async def update_user(
    store: Annotated[SessionStore, Depends(get_store)],
    admin: Annotated[AuthContext, Depends(require_admin)],
    body: UpdateUserBody,
) -> dict:
    target = await store.find_user(body.id)
    if target is None:
        raise HTTPException(status_code=404, detail="User not found")
    try:
        await store.update_user(
            target,
            name=body.name,
            password_hash=hash_password(body.password) if body.password else None,
            is_admin=body.is_admin,
        )
    except DuplicateUserNameError as e:
        raise HTTPException(status_code=400, detail="Name already registered") from e
    logger.info("Admin %s updated user %s", admin.id, body.id)
    return {}


@router.delete(
    "/delete_user",
    summary="Delete a user and its session (admin; never self)",
    responses={
        400: {"description": "Cannot delete self"},
        401: {"description": "Not an administrator"},
        404: {"description": "User not found"},
    },
)
async def delete_user(
    store: Annotated[SessionStore, Depends(get_store)],
    user: Annotated[AuthContext, Depends(require_authed)],
    target_id: Annotated[str, Query(alias="id", min_length=1)],
) -> dict:
    if target_id == user.id:
        raise HTTPException(status_code=400, detail="Cannot delete self")
    admin = ensure_admin(user)
    if not await store.delete_user(target_id):
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("Admin %s deleted user %s", admin.id, target_id)
    return {}
