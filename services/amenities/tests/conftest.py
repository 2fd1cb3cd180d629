"""
Shared test fixtures for the amenity service test suite.

Provides:
- an in-memory store, review lifecycle and a seeded amenity
- async FastAPI test client with the store injected and Overpass mocked
- HMAC-signed moderator headers
"""

import os
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

# Ensure test env vars before any app imports
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("SENTRY_DSN", "")

from services.amenities.config import settings  # noqa: E402
from services.amenities.geodata.client import OverpassClient  # noqa: E402
from services.amenities.middleware.admin_hmac import signed_headers  # noqa: E402
from services.amenities.reviews.lifecycle import ReviewLifecycle  # noqa: E402
from services.amenities.store.memory import MemoryStore  # noqa: E402
from services.amenities.tests.helpers.factories import (  # noqa: E402
    ADMIN_SECRET,
    FALLBACK_URL,
    PRIMARY_URL,
    make_amenity,
)


# ---------------------------------------------------------------------------
# Store / lifecycle
# ---------------------------------------------------------------------------

@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def lifecycle(store):
    return ReviewLifecycle(store, flag_threshold=2, thank_you_message="Thanks!")


@pytest.fixture
async def amenity(store):
    return await store.upsert(make_amenity())


# ---------------------------------------------------------------------------
# FastAPI test client
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_redis():
    """Mock Redis client for rate limiter tests."""
    redis = AsyncMock()
    pipe = AsyncMock()
    pipe.execute = AsyncMock(return_value=[None, 0, None, None])
    redis.pipeline = MagicMock(return_value=pipe)
    redis.ping = AsyncMock()
    return redis


@pytest.fixture
def overpass_calls():
    """URLs the mocked Overpass transport was hit with."""
    return []


@pytest.fixture
def overpass_responses():
    """Tests append httpx.Response objects here before calling live routes."""
    return []


@pytest.fixture
async def app(store, lifecycle, overpass_responses, overpass_calls):
    """The FastAPI app with an in-memory store and a mocked Overpass transport."""
    from services.amenities.main import app as _app

    def handler(request: httpx.Request) -> httpx.Response:
        overpass_calls.append(str(request.url))
        if not overpass_responses:
            return httpx.Response(503)
        return overpass_responses.pop(0)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    _app.state.settings = settings
    _app.state.store = store
    _app.state.lifecycle = lifecycle
    _app.state.overpass = OverpassClient([PRIMARY_URL, FALLBACK_URL], http_client=http_client)
    yield _app
    await http_client.aclose()


@pytest.fixture
async def client(app):
    """Async HTTP client bound to the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_secret(monkeypatch):
    monkeypatch.setattr(settings, "admin_hmac_secret", ADMIN_SECRET)
    return ADMIN_SECRET


@pytest.fixture
def moderator_headers(admin_secret):
    """moderator_headers("POST", "/api/admin/reviews/moderate", body=b"...") -> signed headers."""
    def _build(method: str, path: str, body: bytes = b"", query: str = "", moderator_id: str = "mod-1"):
        return signed_headers(admin_secret, method, path, moderator_id, body=body, query_string=query)
    return _build
