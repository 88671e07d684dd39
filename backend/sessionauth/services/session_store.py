"""Persistence used by the session core: one session row per user, plus user lookups."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sessionauth.models.user import User
from sessionauth.models.user_session import UserSession

logger = logging.getLogger(__name__)


class StorageUnavailableError(Exception):
    """Raised when the database cannot complete a store operation."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.message = message


class DuplicateUserNameError(Exception):
    """Raised when a user name is already taken."""

    def __init__(self, name: str):
        super().__init__(f"User name already taken: {name}")
        self.name = name


class SessionStore:
    """Store adapter over an AsyncSession. Mutations commit their own unit of work."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _fail(self, operation: str, exc: SQLAlchemyError) -> StorageUnavailableError:
        logger.error("Store %s failed: %s", operation, exc)
        try:
            await self.db.rollback()
        except SQLAlchemyError as rollback_exc:
            logger.error("Rollback after %s failed: %s", operation, rollback_exc)
        return StorageUnavailableError(operation, str(exc))

    # Sessions

    async def find_session(self, user_id: str) -> UserSession | None:
        try:
            r = await self.db.execute(
                select(UserSession)
                .where(UserSession.user_id == user_id)
                .execution_options(populate_existing=True)
            )
            return r.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise await self._fail("find_session", e) from e

    async def upsert_session(self, user_id: str, token_hash: str, issued_to: str) -> None:
        """Create or replace the user's session in a single statement; last write wins."""
        dialect = self.db.get_bind().dialect.name
        insert = sqlite_insert if dialect == "sqlite" else pg_insert
        now = datetime.now(timezone.utc)
        stmt = insert(UserSession).values(
            user_id=user_id, token_hash=token_hash, issued_to=issued_to, updated_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserSession.user_id],
            set_={
                "token_hash": stmt.excluded.token_hash,
                "issued_to": stmt.excluded.issued_to,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        try:
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as e:
            raise await self._fail("upsert_session", e) from e

    async def delete_session(self, user_id: str) -> None:
        """Delete the user's session; no-op when there is none."""
        try:
            await self.db.execute(delete(UserSession).where(UserSession.user_id == user_id))
            await self.db.commit()
        except SQLAlchemyError as e:
            raise await self._fail("delete_session", e) from e

    # Users

    async def find_user(self, user_id: str) -> User | None:
        try:
            r = await self.db.execute(select(User).where(User.id == user_id))
            return r.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise await self._fail("find_user", e) from e

    async def find_user_by_name(self, name: str) -> User | None:
        try:
            r = await self.db.execute(select(User).where(User.name == name))
            return r.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise await self._fail("find_user_by_name", e) from e

    async def list_users(self, include_admins: bool) -> list[User]:
        stmt = select(User).order_by(User.created_at, User.name)
        if not include_admins:
            stmt = stmt.where(User.is_admin.is_(False))
        try:
            r = await self.db.execute(stmt)
            return list(r.scalars().all())
        except SQLAlchemyError as e:
            raise await self._fail("list_users", e) from e

    async def create_user(self, name: str, password_hash: str, is_admin: bool = False) -> User:
        user = User(name=name, password_hash=password_hash, is_admin=is_admin)
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateUserNameError(name) from e
        except SQLAlchemyError as e:
            raise await self._fail("create_user", e) from e
        return user

    async def update_user(
        self,
        user: User,
        name: str | None = None,
        password_hash: str | None = None,
        is_admin: bool | None = None,
    ) -> User:
        """Apply the given fields; None leaves a field unchanged."""
        target_name = name if name is not None else user.name
        if name is not None:
            user.name = name
        if password_hash is not None:
            user.password_hash = password_hash
        if is_admin is not None:
            user.is_admin = is_admin
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateUserNameError(target_name) from e
        except SQLAlchemyError as e:
            raise await self._fail("update_user", e) from e
        return user

    async def delete_user(self, user_id: str) -> bool:
        """Delete the user and its session together. Returns False when the user did not exist."""
        try:
            await self.db.execute(delete(UserSession).where(UserSession.user_id == user_id))
            r = await self.db.execute(delete(User).where(User.id == user_id))
            await self.db.commit()
        except SQLAlchemyError as e:
            raise await self._fail("delete_user", e) from e
        return r.rowcount > 0
