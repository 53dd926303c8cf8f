# tests/conftest.py
from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from listings.database import get_db
from listings.geocoding import GeocodingResolver
from listings.main import app, get_geocoder, get_media_ingestor, get_repository
from listings.media import Blob, MediaIngestor
from tests.utils import FakeS3Client, FakeSession, InMemoryRepository, InMemoryStore

MANAGER_HEADERS = {"X-User-Id": "manager-123", "X-User-Role": "manager"}


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def session(store) -> FakeSession:
    return FakeSession(store)


@pytest.fixture
def repository(store) -> InMemoryRepository:
    return InMemoryRepository(store)


@pytest.fixture
def geocoder_factory():
    """Build a resolver whose HTTP calls go to a handler instead of the network."""

    def _factory(handler, *, timeout_s: float = 2.0) -> GeocodingResolver:
        return GeocodingResolver(
            base_url="https://geocoder.test/search",
            user_agent="RealEstateApp/1.0",
            timeout_s=timeout_s,
            transport=httpx.MockTransport(handler),
        )

    return _factory


@pytest.fixture
def unresolvable_geocoder(geocoder_factory) -> GeocodingResolver:
    return geocoder_factory(lambda request: httpx.Response(200, json=[]))


@pytest.fixture
def s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def configured_ingestor(s3_client) -> MediaIngestor:
    return MediaIngestor(bucket="listing-photos", region="us-east-1", client=s3_client)


@pytest.fixture
def blob():
    def _factory(filename: str, data: bytes = b"\xff\xd8\xff") -> Blob:
        return Blob(filename=filename, content_type="image/jpeg", data=data)

    return _factory


@pytest.fixture
def client(store, session, repository, unresolvable_geocoder):
    """API client wired to the in-memory store, a failing geocoder and no S3."""

    def _db():
        yield session

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_geocoder] = lambda: unresolvable_geocoder
    app.dependency_overrides[get_media_ingestor] = lambda: MediaIngestor(bucket="")
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# -------- Pytest markers --------
def pytest_configure(config):
    config.addinivalue_line("markers", "integration: needs a PostGIS database (TEST_DATABASE_URL)")
