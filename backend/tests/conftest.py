"""
Userhub Backend — Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (databases, blob stores, images,
       an API client wired to an isolated app instance).
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── mock_db_session: Mock database session (no real DB needed)
    ├── database:        SQLite (aiosqlite) database in tmp_path, tables created
    ├── local_store:     LocalBlobStore rooted in tmp_path, controllable clock
    ├── make_image:      Pillow-generated image bytes in any size/format
    ├── app:             create_app() with the fixtures above injected
    └── test_client:     HTTPX AsyncClient talking to `app`
"""

import io
import os
import tempfile
from typing import AsyncGenerator, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image


# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Override settings for testing BEFORE any app imports
# Why: importing userhub.main builds a default app from the environment
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["MEDIA_ROOT"] = os.path.join(tempfile.mkdtemp(prefix="userhub_test_"), "media")
os.environ["SIGNING_SECRET"] = "test-signing-secret"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

from userhub.config import Settings  # noqa: E402
from userhub.database import Database  # noqa: E402
from userhub.services.local_blob_store import LocalBlobStore  # noqa: E402

TEST_SECRET = "test-signing-secret"


class FakeClock:
    """Manually advanced time source for signed-URL expiry tests."""

    def __init__(self, now: float = 1_718_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    What:    An AsyncMock that simulates AsyncSession behavior.
    Why:     Error-translation tests should not require a real database.

    Usage:
        async def test_db_failure(mock_db_session):
            mock_db_session.execute.side_effect = SQLAlchemyError("boom")
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.scalar = AsyncMock()
    session.get = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """A file-backed SQLite database with every table created."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'userhub.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def local_store(tmp_path, clock) -> LocalBlobStore:
    """LocalBlobStore with media_root=<tmp>/public/media and private=<tmp>/public/private."""
    return LocalBlobStore(
        media_root=str(tmp_path / "public" / "media"),
        signing_secret=TEST_SECRET,
        clock=clock,
    )


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    """
    Factory for real, decodable image bytes.

    Usage:
        png = make_image(1600, 1200, "PNG")
        gif = make_image(64, 64, "GIF", noise=True)   # ~10KB, incompressible
    """

    def _make(
        width: int = 64,
        height: int = 64,
        fmt: str = "PNG",
        color=(200, 30, 60),
        noise: bool = False,
        **save_options,
    ) -> bytes:
        if noise:
            img = Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))
        else:
            img = Image.new("RGB", (width, height), color)
        buf = io.BytesIO()
        img.save(buf, format=fmt, **save_options)
        return buf.getvalue()

    return _make


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'userhub.db'}",
        storage_backend="local",
        media_root=str(tmp_path / "public" / "media"),
        signing_secret=TEST_SECRET,
        bcrypt_rounds=4,  # Minimum cost keeps the suite fast
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def app(test_settings, database, local_store):
    """
    A fully wired application with isolated storage.

    Lifespan events are not run by ASGITransport; create_app() wires
    everything eagerly, so none are needed.
    """
    from userhub.main import create_app

    return create_app(settings=test_settings, database=database, blob_store=local_store)


@pytest_asyncio.fixture
async def test_client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    Provides an async HTTP test client for endpoint testing.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def register_user(test_client) -> Callable:
    """Registers users through the API; returns the async helper."""

    async def _register(user_id: str, email: str, rol: str = "user", **fields) -> dict:
        payload = {
            "id": user_id,
            "name": fields.pop("name", "Ana"),
            "lastname": fields.pop("lastname", "Diaz"),
            "rol": rol,
            "email": email,
            "phone": fields.pop("phone", "555-0100"),
            "password": fields.pop("password", "correct horse"),
        }
        response = await test_client.post("/api/register", json=payload)
        assert response.status_code == 200, response.text
        return payload

    return _register
