"""Shared fixtures: a file-backed sqlite database per test and search index doubles."""

import os

import pytest
import pytest_asyncio

# Force testing environment before the application settings are first read
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./marketbase-test.db"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["BROKER_URL"] = "memory://"
os.environ["RESULT_BACKEND"] = "cache+memory://"

from factories import seed_catalog, seed_database  # noqa: E402
from fakes import FailingSearchIndex, InMemorySearchIndex  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from marketbase.config import Settings  # noqa: E402
from marketbase.database import init_db, make_engine, make_session_factory  # noqa: E402
from marketbase.fallback import FallbackCoordinator  # noqa: E402
from marketbase.main import create_app  # noqa: E402
from marketbase.sync import SyncSinks  # noqa: E402


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        ENVIRONMENT="testing",
        REINDEX_BATCH_SIZE=2,
    )


@pytest_asyncio.fixture
async def engine(settings):
    engine = make_engine(settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def search_index() -> InMemorySearchIndex:
    return InMemorySearchIndex()


@pytest.fixture
def failing_index() -> FailingSearchIndex:
    return FailingSearchIndex()


@pytest.fixture
def coordinator() -> FallbackCoordinator:
    return FallbackCoordinator()


@pytest.fixture
def sinks(search_index, settings) -> SyncSinks:
    return SyncSinks.inline(search_index, settings)


@pytest.fixture
def failing_sinks(failing_index, settings) -> SyncSinks:
    return SyncSinks.inline(failing_index, settings)


# -------------------- DATA --------------------
@pytest_asyncio.fixture
async def catalog(db):
    return await seed_catalog(db)


# -------------------- HTTP --------------------
@pytest.fixture
def app(settings, search_index):
    return create_app(settings, search_index=search_index)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def seeded_client(settings, search_index):
    seed_database(settings)
    app = create_app(settings, search_index=search_index)
    with TestClient(app) as c:
        # bring the index in line with the seeded rows
        c.post("/api/admin/reindex", params={"wait": "true"})
        yield c


@pytest.fixture
def degraded_client(settings, failing_index):
    seed_database(settings)
    app = create_app(settings, search_index=failing_index)
    with TestClient(app) as c:
        yield c
