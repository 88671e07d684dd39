"""Store adapter: upsert semantics, idempotent delete, user/session cascade, failure wrapping."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from sessionauth.services.session_store import (
    DuplicateUserNameError,
    SessionStore,
    StorageUnavailableError,
)


@pytest.mark.asyncio
async def test_upsert_creates_then_replaces(store, alice):
    user_id, _, _ = alice
    await store.upsert_session(user_id, "a" * 64, "f" * 64)
    await store.upsert_session(user_id, "b" * 64, "e" * 64)

    row = await store.find_session(user_id)
    assert row.token_hash == "b" * 64
    assert row.issued_to == "e" * 64


@pytest.mark.asyncio
async def test_delete_session_is_idempotent(store, alice):
    user_id, _, _ = alice
    await store.delete_session(user_id)
    await store.upsert_session(user_id, "a" * 64, "f" * 64)
    await store.delete_session(user_id)
    await store.delete_session(user_id)
    assert await store.find_session(user_id) is None


@pytest.mark.asyncio
async def test_delete_user_removes_session(store, alice):
    user_id, _, _ = alice
    await store.upsert_session(user_id, "a" * 64, "f" * 64)

    assert await store.delete_user(user_id) is True

    assert await store.find_user(user_id) is None
    assert await store.find_session(user_id) is None
    assert await store.delete_user(user_id) is False


@pytest.mark.asyncio
async def test_create_user_rejects_duplicate_name(store, alice):
    with pytest.raises(DuplicateUserNameError):
        await store.create_user("alice", "hash")


@pytest.mark.asyncio
async def test_update_user_applies_only_given_fields(store, alice):
    user_id, _, _ = alice
    user = await store.find_user(user_id)
    old_hash = user.password_hash

    await store.update_user(user, is_admin=True)

    reloaded = await store.find_user(user_id)
    assert reloaded.is_admin is True
    assert reloaded.name == "alice"
    assert reloaded.password_hash == old_hash


@pytest.mark.asyncio
async def test_list_users_hides_admins_from_members(store, alice, admin):
    assert [u.name for u in await store.list_users(include_admins=False)] == ["alice"]
    assert sorted(u.name for u in await store.list_users(include_admins=True)) == ["alice", "root"]


@pytest.mark.asyncio
async def test_database_errors_become_storage_unavailable():
    db = AsyncMock()
    db.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))
    broken = SessionStore(db)

    with pytest.raises(StorageUnavailableError) as exc:
        await broken.find_session("u")

    assert exc.value.operation == "find_session"
    assert "connection refused" in exc.value.message
    db.rollback.assert_awaited()
