"""
Test infrastructure for the comment board API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- The app is built with ``create_app`` and handed the test ``Database``
  directly, so no dependency overrides are needed for storage.
- Tables are created fresh before each test and dropped after, giving each
  test a clean isolated state.
- Redis is not configured (``REDIS_URL=None``), so the rate limiter counts
  in-process; ASGITransport does not run the lifespan, so nothing tries to
  connect anyway.
- The random identity service is replaced by an ``httpx.MockTransport``
  behind the real ``RandomUserClient``.
"""
import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from commentboard.config import Settings
from commentboard.database import Database
from commentboard.identity import RandomUserClient
from commentboard.main import create_app

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
IDENTITY_URL = "https://identity.test/api/"


def make_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": TEST_DATABASE_URL,
        "REDIS_URL": None,
        "APP_ENV": "test",
        "IDENTITY_API_URL": IDENTITY_URL,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


# ---------------------------------------------------------------------------
# Fake identity service
# ---------------------------------------------------------------------------

class FakeIdentityService:
    """
    ``httpx.MockTransport`` handler imitating randomuser.me.

    Set ``fail_on`` to the 1-based call number that should answer 503, or
    ``password`` to force the password returned for every identity.
    """

    def __init__(self) -> None:
        self.calls = 0
        self.fail_on: int | None = None
        self.password: str | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.fail_on is not None and self.calls == self.fail_on:
            return httpx.Response(503, json={"error": "down"})
        return httpx.Response(
            200,
            json={
                "results": [
                    {
                        "name": {"title": "Ms", "first": "Ada", "last": f"Lovelace{self.calls}"},
                        "login": {"username": f"ada{self.calls}", "password": self.password or f"secret{self.calls}"},
                    }
                ]
            },
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def database():
    """Create all tables before each test, drop after to guarantee isolation."""
    db = Database(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await db.create_all()
    yield db
    await db.drop_all()
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncSession:
    """
    Yield a live AsyncSession for tests that call services directly.
    Nothing is committed unless the test does it.
    """
    async with database.session_factory() as session:
        yield session


@pytest.fixture
def identity_service() -> FakeIdentityService:
    return FakeIdentityService()


@pytest_asyncio.fixture
async def identity_provider(identity_service: FakeIdentityService):
    client = httpx.AsyncClient(transport=httpx.MockTransport(identity_service))
    provider = RandomUserClient(IDENTITY_URL, client=client)
    yield provider
    await provider.aclose()


@pytest.fixture
def make_app(database: Database, identity_provider: RandomUserClient):
    """Build an app wired to the test database; keyword args override settings."""

    def _make(**overrides):
        return create_app(
            settings=make_settings(**overrides),
            database=database,
            identity_provider=identity_provider,
        )

    return _make


@pytest.fixture
def make_client():
    """Return a factory producing an ``AsyncClient`` bound to a given app."""

    def _make(app) -> AsyncClient:
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return _make


@pytest_asyncio.fixture
async def async_client(make_app, make_client) -> AsyncClient:
    async with make_client(make_app()) as client:
        yield client
