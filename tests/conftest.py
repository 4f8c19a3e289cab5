"""
Test configuration and fixtures for the URL shortener.
This centralizes all test setup, making individual tests clean.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from main import create_app
from shortener_app.geolocation.strategies import GeoLocationStrategy, GeoLookup
from shortener_app.services.url_service import URLService
from shortener_app.storage.strategies import InMemoryURLStorage, SQLURLStorage


class FakeClock:
    """Controllable replacement for datetime.now(timezone.utc)"""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeGeoLocator(GeoLocationStrategy):
    """Answers from a fixed table and remembers which IPs were asked"""

    def __init__(self, table=None):
        self.table = table or {}
        self.calls = []

    def lookup(self, ip: str):
        self.calls.append(ip)
        return self.table.get(ip)


GOOGLE_DNS = GeoLookup(country="US", region="CA", city="Mountain View", lat=37.4, lon=-122.1)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def geolocator():
    return FakeGeoLocator({"8.8.8.8": GOOGLE_DNS})


@pytest.fixture
def memory_storage():
    return InMemoryURLStorage()


@pytest.fixture
def sql_storage():
    """
    Durable storage on a private in-memory SQLite database.
    StaticPool keeps the single connection alive for the whole test.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    storage = SQLURLStorage(engine=engine)
    asyncio.run(storage.initialize())

    try:
        yield storage
    finally:
        storage.close()


@pytest.fixture
def service(memory_storage, geolocator, clock):
    return URLService(storage=memory_storage, geolocator=geolocator, clock=clock)


@pytest.fixture
def sql_service(sql_storage, geolocator, clock):
    return URLService(storage=sql_storage, geolocator=geolocator, clock=clock)


@pytest.fixture
def client(service):
    """
    Create a test client around an app serving the in-memory service.
    This is the main fixture that API tests will use.
    """
    app = create_app(service=service, sweep_interval_seconds=0)

    with TestClient(app) as test_client:
        yield test_client
