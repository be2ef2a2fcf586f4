"""
Datastore engines and connections.

Uses SQLAlchemy 2.0 async engines with the asyncpg driver for PostgreSQL.
Every publish environment has its own datastore URL and therefore its own
engine. Engines are created with ``NullPool``: each ``connect()`` opens a
fresh DBAPI connection and closing it really closes it, so a connection never
outlives the request that opened it.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from sqlalchemy import MetaData
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from apppublisher.core.config import settings

logger = logging.getLogger(__name__)


# Naming convention for constraints
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def normalize_database_url(url: str) -> str:
    """
    Make sure datastore URLs name an async driver.

    ``postgres://`` and ``postgresql://`` URLs (as used by most hosting
    providers) become ``postgresql+asyncpg://``, and plain ``sqlite://``
    becomes ``sqlite+aiosqlite://``. asyncpg rejects ``sslmode`` in the query
    string, so it is stripped here and handled through ``connect_args``
    instead.
    """
    parsed = make_url(url)
    if parsed.drivername in ("postgres", "postgresql"):
        parsed = parsed.set(drivername="postgresql+asyncpg")
    elif parsed.drivername == "sqlite":
        parsed = parsed.set(drivername="sqlite+aiosqlite")

    if parsed.drivername.startswith("postgresql"):
        parsed = parsed.difference_update_query(["sslmode"])

    return parsed.render_as_string(hide_password=False)


def redact_database_url(url: str) -> str:
    """Return ``url`` with the password replaced, for logging."""
    return make_url(url).render_as_string(hide_password=True)

def _build_connect_args(url: str) -> dict:
    """
    Build connection arguments for asyncpg.

    SQLite databases don't need special connect_args.
    """
    if url.startswith("sqlite"):
        return {}

    connect_args = {}

    if settings.database_ssl_mode == "disable":
        connect_args["ssl"] = False
    elif settings.database_ssl_mode in ("require", "verify-ca", "verify-full"):
        connect_args["ssl"] = "require"

    # PgBouncer compatibility: disable prepared statement cache
    connect_args["statement_cache_size"] = 0

    return connect_args


# Engines keyed by normalized URL; NullPool means no connections are kept
_ENGINES: dict[str, AsyncEngine] = {}


def get_engine(url: str) -> AsyncEngine:
    """Return the engine for a datastore URL, creating it on first use."""
    url = normalize_database_url(url)
    engine = _ENGINES.get(url)
    if engine is None:
        engine = create_async_engine(
            url,
            echo=settings.should_echo_sql,
            poolclass=NullPool,
            connect_args=_build_connect_args(url),
        )
        _ENGINES[url] = engine
        logger.debug("Created engine for %s", redact_database_url(url))
    return engine


async def dispose_engines() -> None:
    """Dispose every engine created by :func:`get_engine`."""
    for engine in list(_ENGINES.values()):
        await engine.dispose()
    _ENGINES.clear()


class Datastore:
    """Handle on one environment's datastore."""

    def __init__(self, url: str, name: Optional[str] = None, engine: Optional[AsyncEngine] = None):
        self.url = url
        self.name = name or redact_database_url(url)
        self._engine = engine

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = get_engine(self.url)
        return self._engine

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[AsyncConnection]:
        """
        Open one connection and close it on every exit path.

        Usage:
            async with datastore.connect() as conn:
                async with conn.begin():
                    await conn.execute(stmt)
        """
        connection = await self.engine.connect()
        try:
            yield connection
        finally:
            await connection.close()

    def __repr__(self) -> str:
        return f"Datastore({self.name!r})"


async def create_schema(url: str) -> None:
    """
    Create the app table in a datastore if it is missing.

    Development helper only; production schemas are managed outside this
    service.
    """
    # Register models on Base.metadata
    import apppublisher.models  # noqa: F401

    engine = get_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Schema ready in %s", redact_database_url(url))
