"""Access predicates over the resolved AuthContext. Each raises 401 on failure."""

from fastapi import HTTPException

from sessionauth.core.session_rotation import AuthContext

AUTH_ERROR = "Auth error"


def _unauthorized() -> HTTPException:
    return HTTPException(status_code=401, detail=AUTH_ERROR)


def ensure_authed(user: AuthContext | None) -> AuthContext:
    if user is None:
        raise _unauthorized()
    return user


def ensure_fresh_auth(user: AuthContext | None) -> AuthContext:
    """Caller presented a still-valid access token, not one re-minted on this request."""
    user = ensure_authed(user)
    if user.access_updated:
        raise _unauthorized()
    return user


def ensure_admin(user: AuthContext | None) -> AuthContext:
    user = ensure_authed(user)
    if not user.is_admin:
        raise _unauthorized()
    return user
