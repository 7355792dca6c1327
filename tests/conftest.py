import pytest
import pytest_asyncio

from cashflow.config import Settings
from cashflow.container import build_container
from cashflow.database import Database
from cashflow.event_store.repository import InMemoryEventStore, SqliteEventStore
from cashflow.projections.repository import InMemoryProjectionStore, SqliteProjectionStore


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        store_backend="memory",
        uncategorized_label="Uncategorized",
        command_timeout_seconds=5.0,
    )


@pytest_asyncio.fixture
async def database(tmp_path):
    db = await Database.connect(str(tmp_path / "cashflow.db"))
    yield db
    await db.close()


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def event_store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryEventStore()
        return

    db = await Database.connect(str(tmp_path / "events.db"))
    yield SqliteEventStore(db)
    await db.close()


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def projection_store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryProjectionStore()
        return

    db = await Database.connect(str(tmp_path / "projections.db"))
    yield SqliteProjectionStore(db)
    await db.close()


@pytest_asyncio.fixture
async def container(settings):
    container = await build_container(settings)
    yield container
    await container.close()
