"""Pytest fixtures shared by the unit and API tests."""

import asyncio
import os

# Settings are read at import time
os.environ["ENVIRONMENT"] = "test"
os.environ["CACHE_ENABLED"] = "false"
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from app.core.dependencies import get_db, get_gsc_client_factory
from app.main import app
from app.services.storage.reporting_repository import ReportingRepository

SESSION_HEADERS = {"X-Session-Id": "session-test-1234"}


def run(coro):
    """Run a coroutine to completion (tests are synchronous)."""
    return asyncio.run(coro)


class FakeSearchConsoleClient:
    """Stands in for SearchConsoleClient; serves canned rows."""

    def __init__(self, access_token, time_series=None, detail=None, sites=None):
        self.access_token = access_token
        self.time_series = time_series or []
        self.detail = detail or []
        self.sites = sites or []
        self.closed = False

    async def list_sites(self):
        return self.sites

    async def fetch_time_series(self, site_url, start_date, end_date):
        return list(self.time_series)

    async def fetch_detail_rows(self, site_url, start_date, end_date):
        return list(self.detail)

    async def close(self):
        self.closed = True


TIME_SERIES_ROWS = [
    {"date": "2024-01-01", "clicks": 10, "impressions": 100, "ctr": 0.1, "position": 5.0},
    {"date": "2024-01-02", "clicks": 20, "impressions": 100, "ctr": 0.2, "position": 3.0},
]

DETAIL_ROWS = [
    {"date": "2024-01-01", "query": "seo tools", "page": "https://example.com/tools",
     "clicks": 6, "impressions": 60, "ctr": 0.1, "position": 4.0},
    {"date": "2024-01-02", "query": "seo tools", "page": "https://example.com/tools",
     "clicks": 12, "impressions": 40, "ctr": 0.3, "position": 2.0},
    {"date": "2024-01-02", "query": "rank tracker", "page": "https://example.com/rank",
     "clicks": 8, "impressions": 60, "ctr": 0.1333, "position": 7.0},
]


@pytest.fixture
def mongo_db():
    return AsyncMongoMockClient()["seo_dashboard_test"]


@pytest.fixture
def repository(mongo_db):
    return ReportingRepository(mongo_db)


@pytest.fixture
def gsc_rows():
    return {"time_series": TIME_SERIES_ROWS, "detail": DETAIL_ROWS}


@pytest.fixture
def client(mongo_db, gsc_rows):
    async def override_db():
        return mongo_db

    def override_factory():
        return lambda token: FakeSearchConsoleClient(
            token,
            time_series=gsc_rows["time_series"],
            detail=gsc_rows["detail"],
            sites=[{"site_url": "https://example.com/", "permission_level": "siteOwner"}],
        )

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_gsc_client_factory] = override_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def connected_client(client):
    """Client whose session already holds GSC tokens."""
    resp = client.post(
        "/api/v1/gsc/auth/sync",
        json={"tokens": {"access_token": "ya29.token", "refresh_token": "1//refresh"}},
        headers=SESSION_HEADERS,
    )
    assert resp.status_code == 200
    return client
