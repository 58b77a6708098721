import os

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import reservo.models  # noqa: F401
from reservo.core.database import Base, create_engine_for_url, create_schema, get_db
from reservo.main import app

# PostgreSQL when TEST_DATABASE_URL is set, otherwise a throwaway SQLite file per test
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")


@pytest.fixture
async def engine(tmp_path):
    """Create a fresh database engine for each test."""
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    test_engine = create_engine_for_url(url)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)  # Clean slate
    await create_schema(test_engine)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    """Database session for arranging data and calling services directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def override_get_db(session_factory):
    """Give every request its own session on the test database, like production."""

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client(override_get_db):
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


def business_headers(business_id: int) -> dict[str, str]:
    return {"X-Business-ID": str(business_id)}


# Import all booking fixtures to make them available
pytest_plugins = ["tests.fixtures.booking_fixtures"]
