"""
Shared fixtures.

Every test gets its own SQLite file under tmp_path, so tests never share
state and concurrent writers behave like they do in production.
"""

import pytest
import pytest_asyncio

from shortlink.core.setting import Settings
from shortlink.db.session import Database
from shortlink.services.link_service import create_link_service


class FakeClock:
    """Monotonic clock stand-in for cache expiry tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'shortlinks.db'}"


@pytest.fixture
def test_settings(database_url) -> Settings:
    return Settings(
        DATABASE_URL=database_url,
        BASE_URL="https://sho.rt",
        CLICK_FLUSH_BACKOFF_SECONDS=0.0,
        CLICK_FLUSH_INTERVAL_SECONDS=0.05,
        SWEEP_INTERVAL_SECONDS=0.05,
        COMPACTION_INTERVAL_SECONDS=0.05,
        CLIENT_HASH_SECRET="test-secret",
    )


@pytest_asyncio.fixture
async def database(database_url):
    db = Database(database_url)
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def service(test_settings, database):
    link_service = create_link_service(test_settings, database=database)
    yield link_service
    await link_service.shutdown()
