"""Password hashing and JWT creation/verification."""

import enum
import hashlib
import logging
import secrets
from datetime import datetime, timezone, timedelta

import bcrypt
from jose import JWTError, jwt
from pydantic import BaseModel, Field, ValidationError

from sessionauth.config import settings

logger = logging.getLogger(__name__)


class TokenKind(str, enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenPayload(BaseModel):
    """The only claim callers may rely on once a token has been verified."""

    id: str = Field(min_length=1)


def hash_password(password: str) -> str:
    """Hash password with bcrypt. Bytes truncated to 72 (bcrypt limit); no passlib re-encoding."""
    pwd_bytes = password.encode("utf-8")[:72]
    hashed = bcrypt.hashpw(pwd_bytes, bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify password with bcrypt. Plain password truncated to 72 bytes."""
    plain_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(plain_bytes, password_hash.encode("utf-8"))
    except ValueError:
        # stored value is not a bcrypt hash
        return False


def hash_refresh_token(token: str) -> str:
    """SHA256 hash of refresh token for storage."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_lifetime(kind: TokenKind) -> timedelta:
    if kind is TokenKind.REFRESH:
        return timedelta(days=settings.refresh_token_expire_days)
    return timedelta(minutes=settings.access_token_expire_minutes)


def _get_jwt_signing_key_and_algorithm() -> tuple[str, str]:
    """Return (key, algorithm) for signing tokens."""
    if settings.use_rs256:
        return settings.jwt_private_key.strip(), "RS256"
    return settings.secret_key, settings.jwt_algorithm


def _get_jwt_verification_key_and_algorithms() -> tuple[str, list[str]]:
    """Return (key, algorithms) for verifying tokens."""
    if settings.use_rs256:
        return settings.jwt_public_key.strip(), ["RS256"]
    return settings.secret_key, [settings.jwt_algorithm]


def create_token(user_id: str, kind: TokenKind, now: datetime | None = None) -> str:
    """Sign {id: user_id} with the expiry for `kind`. `now` overrides the issue instant."""
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "id": str(user_id),
        "iat": issued_at,
        "exp": issued_at + token_lifetime(kind),
        "jti": secrets.token_hex(8),
    }
    key, algorithm = _get_jwt_signing_key_and_algorithm()
    result = jwt.encode(payload, key, algorithm=algorithm)
    return result if isinstance(result, str) else result.decode("utf-8")


def decode_token(token: str) -> TokenPayload:
    """Verify signature and expiry. Raises JWTError or ValidationError."""
    key, algorithms = _get_jwt_verification_key_and_algorithms()
    claims = jwt.decode(
        token,
        key,
        algorithms=algorithms,
        options={"leeway": settings.jwt_leeway_seconds, "verify_iat": False},
    )
    return TokenPayload.model_validate(claims)


def verify_token_id(token: str | None) -> str | None:
    """Return the user id embedded in a valid token, None for anything else."""
    if not token:
        return None
    try:
        payload = decode_token(token)
    except (JWTError, ValidationError) as e:
        logger.debug("Token rejected: %s", e)
        return None
    return payload.id
