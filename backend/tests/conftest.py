"""Pytest configuration and shared fixtures for API tests."""

import os
import tempfile
from http.cookies import SimpleCookie

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test DB before app imports so config/engine use it
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "sessionauth_test.db"),
)
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("APP_ENV", "test")

from sessionauth.core.auth import hash_password
from sessionauth.core.fingerprint import compute_fingerprint
from sessionauth.db.base import Base
from sessionauth.db.session import async_session_maker, engine
from sessionauth.main import app
from sessionauth.models import User  # noqa: F401 - registers tables on Base.metadata
from sessionauth.services.session_store import SessionStore

TEST_CLIENT_HOST = "127.0.0.1"
TEST_USER_AGENT = "session-tests/1.0"


@pytest_asyncio.fixture
async def clean_db():
    """Fresh tables for every test; engine disposed so no connection outlives the test loop."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest_asyncio.fixture
async def client(clean_db):
    async with AsyncClient(
        transport=ASGITransport(app=app, client=(TEST_CLIENT_HOST, 51000)),
        base_url="https://test",
        headers={"User-Agent": TEST_USER_AGENT},
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def db_session(clean_db):
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def store(db_session):
    return SessionStore(db_session)


@pytest.fixture
def fingerprint():
    """Fingerprint the test client produces."""
    return compute_fingerprint(TEST_CLIENT_HOST, TEST_USER_AGENT)


async def _create_user(name: str, password: str, is_admin: bool) -> str:
    async with async_session_maker() as session:
        user = await SessionStore(session).create_user(name, hash_password(password), is_admin=is_admin)
        return user.id


@pytest_asyncio.fixture
async def alice(clean_db):
    """Non-admin user; returns (user_id, name, password)."""
    user_id = await _create_user("alice", "secret1", False)
    return user_id, "alice", "secret1"


@pytest_asyncio.fixture
async def admin(clean_db):
    """Admin user; returns (user_id, name, password)."""
    user_id = await _create_user("root", "rootpass", True)
    return user_id, "root", "rootpass"


def response_cookies(resp) -> dict:
    """Parse Set-Cookie headers into {name: Morsel} (kept even when max-age=0)."""
    jar = SimpleCookie()
    for header in resp.headers.get_list("set-cookie"):
        jar.load(header)
    return dict(jar)


def cookie_header(**cookies) -> dict:
    return {"Cookie": "; ".join(f"{k}={v}" for k, v in cookies.items() if v is not None)}


async def login(client: AsyncClient, name: str, password: str) -> dict:
    """Log in and return {"token": refresh, "aToken": access}."""
    resp = await client.post("/api/v1/auth/login", json={"name": name, "pass": password})
    assert resp.status_code == 200, resp.text
    cookies = response_cookies(resp)
    return {"token": cookies["token"].value, "aToken": cookies["aToken"].value}


async def send(client: AsyncClient, method: str, url: str, cookies: dict, **kwargs):
    """Request with exactly the given cookies, ignoring anything the client jar holds."""
    client.cookies.clear()
    headers = {**kwargs.pop("headers", {}), **cookie_header(**cookies)}
    return await client.request(method, url, headers=headers, **kwargs)
