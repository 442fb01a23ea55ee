"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  A ``StaticPool`` keeps every session on one
connection so the in-memory database lives for the whole test.
``file_session_factory`` puts the database in a file instead, so that
concurrent requests get separate connections and transactions.

The roster deliberately has no towing provider, which drives the
"no provider available" scenarios.  Customers 1..10 are registered.
"""

from contextlib import contextmanager
from typing import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from roadside.clients.api import RoadsideClient
from roadside.config import settings
from roadside.domain.enums import ProviderStatus, ServiceType, UserRole
from roadside.infrastructure.database import Base
from roadside.infrastructure.models import ProviderModel, UserModel
from roadside.services.accounts import hash_password

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "correct horse"

ROSTER = [
    ("Sarah K.", ServiceType.FLAT_TIRE, "XYZ-5432", 40.71, -74.00),
    ("Mike J.", ServiceType.FLAT_TIRE, "ABC-1234", 40.72, -74.01),
    ("Lena P.", ServiceType.LOCKSMITH, "LCK-2201", None, None),
    ("Omar B.", ServiceType.EMERGENCY, "JMP-7788", None, None),
]
CUSTOMER_IDS = range(1, 11)


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    """Lowest bcrypt work factor; hashes stay valid, just cheap."""
    monkeypatch.setattr(settings, "bcrypt_rounds", 4)


# ── Database ──────────────────────────────────────────────────────────


async def _seed(engine) -> async_sessionmaker:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    password_hash = hash_password(TEST_PASSWORD)
    async with factory() as session:
        for user_id in CUSTOMER_IDS:
            session.add(
                UserModel(
                    id=user_id,
                    name=f"Customer {user_id}",
                    email=f"customer{user_id}@example.com",
                    password_hash=password_hash,
                    role=UserRole.CUSTOMER,
                )
            )
        for name, service_type, plate, lat, lng in ROSTER:
            session.add(
                ProviderModel(
                    name=name,
                    service_type=service_type,
                    status=ProviderStatus.AVAILABLE,
                    plate=plate,
                    latitude=lat,
                    longitude=lng,
                )
            )
        await session.commit()
    return factory


async def _teardown(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(fast_hashing) -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh schema + seeded customers and roster per test."""
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
    yield await _seed(engine)
    await _teardown(engine)


@pytest_asyncio.fixture
async def file_session_factory(
    fast_hashing, tmp_path
) -> AsyncGenerator[async_sessionmaker, None]:
    """Same data in a database file; one connection per session."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'roadside.db'}", echo=False
    )
    yield await _seed(engine)
    await _teardown(engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ── API ───────────────────────────────────────────────────────────────


@contextmanager
def _app_on(factory):
    """FastAPI app wired to ``factory``, worker and limiter off."""
    from roadside.api.app import create_app
    from roadside.api.dependencies import get_db
    from roadside.api.middleware import limiter

    async def _test_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    with (
        patch(
            "roadside.workers.progression.start_progression_loop",
            new_callable=AsyncMock,
        ),
        patch(
            "roadside.workers.progression.stop_progression_loop",
            new_callable=AsyncMock,
        ),
    ):
        application = create_app()
        application.dependency_overrides[get_db] = _test_db
        limiter.reset()
        limiter.enabled = False
        try:
            yield application
        finally:
            limiter.enabled = True


@pytest.fixture
def app(session_factory):
    with _app_on(session_factory) as application:
        yield application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def file_client(file_session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Client over an app backed by ``file_session_factory``."""
    with _app_on(file_session_factory) as application:
        transport = ASGITransport(app=application)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


@pytest.fixture
def api(client) -> RoadsideClient:
    return RoadsideClient(client)


@pytest.fixture
def new_request():
    """Body factory for ``POST /api/request``."""

    def _make(user_id=1, service_type="flat-tire", location="X", **extra):
        body = {"userId": user_id, "serviceType": service_type, "location": location}
        body.update(extra)
        return body

    return _make
