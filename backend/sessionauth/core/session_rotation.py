"""
Per-request session resolution.

An access token that verifies is trusted without touching the session row. Otherwise a
refresh token is accepted only if its digest and the requester fingerprint both match the
user's session row; on success a new access/refresh pair is minted and the row rewritten,
so any earlier refresh token for that user stops working. A mismatch deletes the row.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass

from sessionauth.core.auth import TokenKind, create_token, hash_refresh_token, verify_token_id
from sessionauth.models.user import User
from sessionauth.services.session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    id: str
    name: str
    is_admin: bool
    # True when this request's tokens were re-minted from the refresh token
    access_updated: bool


@dataclass(frozen=True)
class TokenPair:
    refresh_token: str
    access_token: str


@dataclass(frozen=True)
class SessionResolution:
    user: AuthContext | None
    issued: TokenPair | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.user is None


ANONYMOUS = SessionResolution(user=None)


def _context(user: User, access_updated: bool) -> AuthContext:
    return AuthContext(id=user.id, name=user.name, is_admin=user.is_admin, access_updated=access_updated)


async def issue_session(store: SessionStore, user_id: str, fingerprint: str) -> TokenPair:
    """Mint a fresh token pair and make its refresh digest the user's only valid session."""
    pair = TokenPair(
        refresh_token=create_token(user_id, TokenKind.REFRESH),
        access_token=create_token(user_id, TokenKind.ACCESS),
    )
    await store.upsert_session(user_id, hash_refresh_token(pair.refresh_token), fingerprint)
    return pair


async def _load_user(store: SessionStore, user_id: str) -> User | None:
    user = await store.find_user(user_id)
    if user is None:
        logger.info("Token names unknown user %s; dropping session", user_id)
        await store.delete_session(user_id)
    return user


def _session_matches(row, refresh_token: str, fingerprint: str) -> bool:
    if row is None:
        return False
    if not hmac.compare_digest(row.token_hash, hash_refresh_token(refresh_token)):
        return False
    return hmac.compare_digest(row.issued_to, fingerprint)


async def resolve_session(
    store: SessionStore,
    refresh_token: str | None,
    access_token: str | None,
    fingerprint: str,
) -> SessionResolution:
    """Decide who the caller is; may rotate tokens or delete a stale session as a side effect."""
    if not refresh_token and not access_token:
        return ANONYMOUS

    user_id = verify_token_id(access_token)
    if user_id is not None:
        user = await _load_user(store, user_id)
        if user is None:
            return ANONYMOUS
        return SessionResolution(user=_context(user, access_updated=False))

    user_id = verify_token_id(refresh_token)
    if user_id is None:
        return ANONYMOUS

    row = await store.find_session(user_id)
    if not _session_matches(row, refresh_token, fingerprint):
        logger.warning("Session mismatch for user %s; forcing re-login", user_id)
        await store.delete_session(user_id)
        return ANONYMOUS

    user = await _load_user(store, user_id)
    if user is None:
        return ANONYMOUS
    pair = await issue_session(store, user_id, fingerprint)
    logger.debug("Rotated tokens for user %s", user_id)
    return SessionResolution(user=_context(user, access_updated=True), issued=pair)
