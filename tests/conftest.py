import os
import tempfile
from pathlib import Path

# Point the application at a throwaway database before anything imports app.config
_TEST_DIR = Path(tempfile.mkdtemp(prefix="yard-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR / 'yard_test.db'}"
os.environ["COST_MODEL"] = "fixed"
os.environ["ALLOCATION_MAX_ATTEMPTS"] = "3"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.database import Base, async_session_factory, engine, init_db  # noqa: E402
from tests.factories import slot_rows  # noqa: E402


@pytest.fixture
def test_dir() -> Path:
    return _TEST_DIR


@pytest_asyncio.fixture
async def session_factory():
    """Fresh schema for every test."""
    await init_db()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield async_session_factory
    await engine.dispose()


@pytest_asyncio.fixture
async def seed_slots(session_factory):
    """Insert slots into the test database."""
    async def _seed(slots):
        async with session_factory() as session:
            session.add_all(slot_rows(slots))
            await session.commit()
    return _seed


@pytest_asyncio.fixture
async def client(session_factory):
    from app.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
