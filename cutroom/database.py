"""Async engine/session wiring.

SQLite is used for local dev and tests, PostgreSQL in production. On SQLite
the quota reservation relies on the database write lock, so connections wait
on a busy database instead of failing immediately.
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import settings

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"timeout": SQLITE_BUSY_TIMEOUT_SECONDS}}
    return {"pool_pre_ping": True}


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


engine = create_async_engine(settings.database_url, echo=settings.echo_sql, **_engine_kwargs(settings.database_url))
if engine.dialect.name == "sqlite":
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    """FastAPI dependency that yields an async session."""
    async with async_session_factory() as session:
        yield session
