"""
Pytest configuration and shared fixtures.
"""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from api.config import APIConfig
from api.main import create_app
from storage.database import Database
from utilities.config import AppConfig


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    """Create a controllable clock."""
    return FakeClock()


@pytest.fixture
def database_url(tmp_path):
    """SQLite database file private to one test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}"


@pytest.fixture
def app_settings(database_url):
    """Application settings pointing at the test database."""
    return AppConfig(database_url=database_url, environment="testing")


@pytest.fixture
def api_settings():
    """API settings with rate limiting switched off."""
    return APIConfig(limiter_enabled=False)


@pytest.fixture
def client(app_settings, api_settings):
    """Create test client running the application lifespan."""
    app = create_app(app_settings, api_settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def database(database_url):
    """Connected database with tables created."""
    db = Database(database_url)
    await db.connect()
    yield db
    await db.disconnect()


@pytest.fixture
def create_book(client):
    """Create a book through the API and return its JSON."""
    def _create(title="The Left Hand of Darkness", author="Ursula K. Le Guin", genre="Science Fiction"):
        response = client.post("/v1/books", json={"title": title, "author": author, "genre": genre})
        assert response.status_code == 201
        return response.json()["book"]
    return _create
