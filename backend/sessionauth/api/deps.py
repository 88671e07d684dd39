"""FastAPI dependencies: store, session resolution from cookies, access gates."""

from typing import Annotated

from fastapi import Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from sessionauth.config import settings
from sessionauth.core.auth import TokenKind, token_lifetime
from sessionauth.core.fingerprint import request_fingerprint
from sessionauth.core.permissions import ensure_admin, ensure_authed, ensure_fresh_auth
from sessionauth.core.session_rotation import AuthContext, TokenPair, resolve_session
from sessionauth.db.session import get_db
from sessionauth.services.session_store import SessionStore

# Value staged on request.state.session_cookies to drop both cookies
CLEAR_COOKIES = "clear"


def get_store(session: Annotated[AsyncSession, Depends(get_db)]) -> SessionStore:
    return SessionStore(session)


def stage_session_cookies(request: Request, pair: TokenPair) -> None:
    request.state.session_cookies = pair


def stage_cookie_clear(request: Request) -> None:
    request.state.session_cookies = CLEAR_COOKIES


def _set_cookie(response: Response, key: str, value: str, kind: TokenKind) -> None:
    response.set_cookie(
        key=key,
        value=value,
        max_age=int(token_lifetime(kind).total_seconds()),
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite=settings.cookie_samesite,
    )


def _delete_cookie(response: Response, key: str) -> None:
    response.delete_cookie(
        key=key,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite=settings.cookie_samesite,
    )


def apply_session_cookies(request: Request, response: Response) -> None:
    """Write whatever the request staged (new pair or clear) onto the outgoing response."""
    staged = getattr(request.state, "session_cookies", None)
    if staged is None:
        return
    if staged == CLEAR_COOKIES:
        _delete_cookie(response, settings.refresh_cookie_name)
        _delete_cookie(response, settings.access_cookie_name)
        return
    _set_cookie(response, settings.refresh_cookie_name, staged.refresh_token, TokenKind.REFRESH)
    _set_cookie(response, settings.access_cookie_name, staged.access_token, TokenKind.ACCESS)


async def get_auth_context(
    request: Request,
    store: Annotated[SessionStore, Depends(get_store)],
) -> AuthContext | None:
    """Resolve the caller from the token cookies. None means anonymous (cookies get cleared)."""
    resolution = await resolve_session(
        store,
        refresh_token=request.cookies.get(settings.refresh_cookie_name),
        access_token=request.cookies.get(settings.access_cookie_name),
        fingerprint=request_fingerprint(request),
    )
    if resolution.is_anonymous:
        stage_cookie_clear(request)
    elif resolution.issued is not None:
        stage_session_cookies(request, resolution.issued)
    return resolution.user


async def require_authed(
    user: Annotated[AuthContext | None, Depends(get_auth_context)],
) -> AuthContext:
    return ensure_authed(user)


async def require_fresh_auth(
    user: Annotated[AuthContext | None, Depends(get_auth_context)],
) -> AuthContext:
    """Reject requests whose tokens were just re-minted from the refresh token."""
    return ensure_fresh_auth(user)


async def require_admin(
    user: Annotated[AuthContext | None, Depends(get_auth_context)],
) -> AuthContext:
    return ensure_admin(user)
