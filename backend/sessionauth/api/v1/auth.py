"""Auth: login, register, logout, me."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from sessionauth.api.deps import (
    get_store,
    require_authed,
    stage_cookie_clear,
    stage_session_cookies,
)
from sessionauth.core.auth import hash_password, verify_password
from sessionauth.core.fingerprint import request_fingerprint
from sessionauth.core.session_rotation import AuthContext, issue_session
from sessionauth.services.session_store import DuplicateUserNameError, SessionStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

MIN_PASSWORD_LENGTH = 6

# Compared against when the name is unknown so both failure paths cost one bcrypt check.
_DUMMY_PASSWORD_HASH = hash_password("dummy-password-for-timing")


class LoginBody(BaseModel):
    name: str
    password: str = Field(alias="pass")


class RegisterBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=255)
    password: str = Field(alias="pass", min_length=MIN_PASSWORD_LENGTH)
    is_admin: bool = Field(default=False, alias="isAdmin")


class MeOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    is_admin: bool = Field(alias="isAdmin")
    access_updated: bool = Field(alias="accessUpdated")


@router.post(
    "/login",
    summary="Login with name and password; sets the token cookies",
    responses={
        404: {"description": "Unknown name or wrong password"},
        500: {"description": "Database error"},
    },
)
async def login(
    request: Request,
    store: Annotated[SessionStore, Depends(get_store)],
    body: LoginBody,
) -> dict:
    user = await store.find_user_by_name(body.name)
    if user is None:
        verify_password(body.password, _DUMMY_PASSWORD_HASH)
        raise HTTPException(status_code=404, detail="User not found")
    if not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=404, detail="User not found")
    pair = await issue_session(store, user.id, request_fingerprint(request))
    stage_session_cookies(request, pair)
    logger.info("User %s logged in", user.id)
    return {}


@router.post(
    "/register",
    summary="Register a new user (does not log in)",
    responses={
        400: {"description": "Name already registered"},
        500: {"description": "Database error"},
    },
)
async def register(
    store: Annotated[SessionStore, Depends(get_store)],
    body: RegisterBody,
) -> dict:
    name = body.name
    if await store.find_user_by_name(name) is not None:
        raise HTTPException(status_code=400, detail="Name already registered")
    try:
        user = await store.create_user(name, hash_password(body.password), is_admin=body.is_admin)
    except DuplicateUserNameError as e:
        logger.warning("Register race on name %r", name)
        raise HTTPException(status_code=400, detail="Name already registered") from e
    logger.info("Registered user %s (admin=%s)", user.id, user.is_admin)
    return {}


@router.post(
    "/logout",
    summary="End the current session and clear the token cookies",
    responses={401: {"description": "Not authenticated"}},
)
async def logout(
    request: Request,
    store: Annotated[SessionStore, Depends(get_store)],
    user: Annotated[AuthContext, Depends(require_authed)],
) -> dict:
    await store.delete_session(user.id)
    stage_cookie_clear(request)
    return {}


@router.get(
    "/me",
    response_model=MeOut,
    summary="Get current authenticated user",
    responses={401: {"description": "Not authenticated"}},
)
async def me(user: Annotated[AuthContext, Depends(require_authed)]) -> MeOut:
    return MeOut(id=user.id, name=user.name, is_admin=user.is_admin, access_updated=user.access_updated)
