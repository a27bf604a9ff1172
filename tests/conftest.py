"""
Test Configuration and Fixtures

Provides async test client, database fixtures, and authentication helpers.
The test database defaults to a local SQLite file so the suite runs without
PostgreSQL; set TEST_DATABASE_URL to run against a real server.
"""

import fnmatch
import os

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_mshahara.db")

# Must be set before backend settings are first loaded
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["RULES_CACHE_TTL_SECONDS"] = "0"

from collections.abc import AsyncGenerator  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from backend.db.session import get_db, get_session_factory  # noqa: E402
from backend.main import app  # noqa: E402
from backend.models import Base  # noqa: E402
from backend.models.company import Company  # noqa: E402
from backend.services import cache  # noqa: E402
from backend.services.auth import create_access_token  # noqa: E402

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide a clean database session for each test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_session: AsyncSession) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database (schema created by db_session)."""
    return TestSessionLocal


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async test client with dependency overrides."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestSessionLocal

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_company(db_session: AsyncSession) -> Company:
    """Create and commit a test company."""
    company = Company(
        id=uuid4(),
        name="Test Traders Ltd",
        tin="100-200-300",
        country_code="TZ",
        jurisdiction="mainland",
    )
    db_session.add(company)
    await db_session.commit()
    return company


@pytest_asyncio.fixture
async def auth_headers(test_company: Company) -> dict[str, str]:
    """JWT auth headers for an owner of the test company."""
    token = create_access_token(
        sub=str(uuid4()),
        email="owner@test.co.tz",
        company_id=str(test_company.id),
        role="owner",
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def viewer_headers(test_company: Company) -> dict[str, str]:
    """JWT auth headers for a read-only user of the test company."""
    token = create_access_token(
        sub=str(uuid4()),
        email="viewer@test.co.tz",
        company_id=str(test_company.id),
        role="viewer",
    )
    return {"Authorization": f"Bearer {token}"}


class MemoryRedis:
    """Just enough of redis.asyncio.Redis for the rules cache."""

    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value

    async def delete(self, key):
        self.store.pop(key, None)

    async def scan_iter(self, match=None, count=None):
        for key in list(self.store):
            if fnmatch.fnmatchcase(key, match or "*"):
                yield key


@pytest.fixture
def memory_redis(monkeypatch) -> MemoryRedis:
    """Route the rules cache to an in-process store."""
    client = MemoryRedis()

    async def get_redis():
        return client

    monkeypatch.setattr(cache, "_get_redis", get_redis)
    return client
