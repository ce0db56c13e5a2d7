from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import models  # noqa: F401  registers the tables on SQLModel.metadata

# Execution option read by the SQLite BEGIN hook: "DEFERRED" or "IMMEDIATE"
SQLITE_BEGIN = "sqlite_begin"


def _emit_sqlite_begin(engine: AsyncEngine) -> None:
    """Have SQLAlchemy emit BEGIN itself so a transaction can choose its lock mode."""

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        mode = conn.get_execution_options().get(SQLITE_BEGIN, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")


class Database:
    """Owns the async engine and session factory for one process.

    Constructed explicitly, opened at startup with ``init()`` and disposed at
    shutdown with ``close()``.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, echo=echo, future=True)
        if self.engine.dialect.name == "sqlite":
            _emit_sqlite_begin(self.engine)
        self.sessionmaker = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def init(self) -> None:
        async with self.engine.begin() as conn:
            # This creates the tables if they don't exist
            await conn.run_sync(SQLModel.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    def session(self) -> AsyncSession:
        return self.sessionmaker()


async def begin_write(session: AsyncSession) -> None:
    """Start the session's transaction holding the database write lock.

    SQLite ignores FOR UPDATE, so booking writes there are serialized by
    BEGIN IMMEDIATE instead. Other backends ignore the option and rely on
    row locks. Call before the first statement of the transaction.
    """
    await session.connection(execution_options={SQLITE_BEGIN: "IMMEDIATE"})


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    db: Database = request.app.state.db
    async with db.session() as session:
        yield session
