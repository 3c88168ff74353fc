"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stemquiz.auth.jwt import create_access_token, reset_keys
from stemquiz.config import get_settings
from stemquiz.database import close_db, get_engine, get_session_factory, init_db
from stemquiz.db import models  # noqa: F401
from stemquiz.db.base import Base
from stemquiz.db.models import User
from tests.factories import create_user


@pytest.fixture(scope="session", autouse=True)
def jwt_keys(tmp_path_factory: pytest.TempPathFactory) -> tuple[str, str]:
    """Generate an RSA key pair for the whole test run."""
    key_dir = tmp_path_factory.mktemp("keys")
    private_path = key_dir / "jwt_private.pem"
    public_path = key_dir / "jwt_public.pem"

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    public_path.write_bytes(
        key.public_key().public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )

    os.environ["STEMQUIZ_JWT_PRIVATE_KEY_PATH"] = str(private_path)
    os.environ["STEMQUIZ_JWT_PUBLIC_KEY_PATH"] = str(public_path)
    os.environ["STEMQUIZ_LOG_FORMAT"] = "console"
    get_settings.cache_clear()
    reset_keys()
    return str(private_path), str(public_path)


@pytest_asyncio.fixture
async def session_factory(tmp_path, monkeypatch) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh SQLite database per test, schema built from the ORM metadata."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'stemquiz.db'}"
    monkeypatch.setenv("STEMQUIZ_DATABASE_URL", url)
    get_settings.cache_clear()

    await init_db(url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield get_session_factory()

    await close_db()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for setup and assertions."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "ada")


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app. Redis is not initialized, so pub/sub and rate limiting are skipped."""
    from stemquiz.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, user: User) -> AsyncClient:
    """Client with a bearer token for ``user``."""
    client.headers["Authorization"] = f"Bearer {create_access_token(user.id, user.username)}"
    return client
