"""
Publish Service Testing Fixtures.

Every publish environment gets its own SQLite file (aiosqlite driver), so the
tests run real SQL against independent datastores.
"""
import os

# Set environment variables for testing BEFORE importing anything
os.environ["ENVIRONMENT"] = "test"
os.environ["CREATION_POLICY"] = "upsert"
os.environ["PRESTAGING_DB_URL"] = ""
os.environ["STAGING_DB_URL"] = ""
os.environ["PRODUCTION_DB_URL"] = ""
os.environ["LOG_FORMAT"] = "text"

from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncEngine

from apppublisher.api.deps import get_environment_router, get_publish_service
from apppublisher.api.main import app
from apppublisher.core.config import PUBLISH_ENVIRONMENTS, CreationPolicy
from apppublisher.core.database import create_schema, dispose_engines, get_engine
from apppublisher.models.app import app_table
from apppublisher.services.environment_router import EnvironmentRouter
from apppublisher.services.publish_service import PublishService


class TickingClock:
    """Deterministic clock that advances one second per call."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class ConnectionCounter:
    """Counts connections handed out and returned by attached engines."""

    def __init__(self):
        self.acquired = 0
        self.released = 0

    def attach(self, engine: AsyncEngine) -> None:
        event.listen(engine.sync_engine, "checkout", self._on_checkout)
        event.listen(engine.sync_engine, "checkin", self._on_checkin)

    def _on_checkout(self, dbapi_connection, connection_record, connection_proxy) -> None:
        self.acquired += 1

    def _on_checkin(self, dbapi_connection, connection_record) -> None:
        self.released += 1


async def read_app(url: str, app_id: str) -> Optional[dict[str, Any]]:
    """Load one app row straight from a datastore."""
    async with get_engine(url).connect() as conn:
        result = await conn.execute(select(app_table).where(app_table.c.app_id == app_id))
        row = result.first()
    return dict(row._mapping) if row is not None else None


@pytest.fixture
def datastore_urls(tmp_path) -> dict[str, str]:
    """One SQLite datastore per publish environment."""
    return {
        env: f"sqlite+aiosqlite:///{tmp_path / f'{env}.db'}"
        for env in PUBLISH_ENVIRONMENTS
    }


@pytest.fixture
async def environment_router(datastore_urls) -> AsyncGenerator[EnvironmentRouter, None]:
    """Router over datastores that already have the app table."""
    for url in datastore_urls.values():
        await create_schema(url)
    yield EnvironmentRouter(datastore_urls)
    await dispose_engines()


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def upsert_service(clock) -> PublishService:
    return PublishService(policy=CreationPolicy.UPSERT, clock=clock)


@pytest.fixture
def strict_service(clock) -> PublishService:
    return PublishService(policy=CreationPolicy.STRICT_UPDATE, clock=clock)


@pytest.fixture
def connection_counter(environment_router, datastore_urls) -> ConnectionCounter:
    counter = ConnectionCounter()
    for url in datastore_urls.values():
        counter.attach(get_engine(url))
    return counter


@pytest.fixture
def full_descriptor() -> dict[str, Any]:
    return {
        "env": "staging",
        "appId": "a1",
        "appName": "svc",
        "appVersion": "1.0",
        "appCode": "code",
        "hasTriggers": True,
        "hasActions": False,
    }


@pytest.fixture
async def client(environment_router, upsert_service) -> AsyncGenerator[AsyncClient, None]:
    """FastAPI test client with dependency overrides."""
    app.dependency_overrides[get_environment_router] = lambda: environment_router
    app.dependency_overrides[get_publish_service] = lambda: upsert_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
