"""
Database — async engine, session factory and the explicit transaction scope.

    db = Database.from_url("sqlite+aiosqlite:///./orderflow.db")
    await db.create_all()

    async with db.transaction() as session:
        ...                      # every read and write of one order
        await session.commit()   # leaving without commit rolls back

Note: the isolation level is always set explicitly on the connection before
the first statement. REPEATABLE READ on server databases, SERIALIZABLE on
SQLite. SQLite additionally opens write transactions with BEGIN IMMEDIATE so
that two writers queue instead of interleaving.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from orderflow.config import Settings
from orderflow.store._tables import Base

logger = structlog.get_logger(__name__)

# Execution option read by the SQLite "begin" hook
SQLITE_BEGIN = "orderflow_sqlite_begin"

_DEFAULT_ISOLATION: dict[str, str] = {
    "sqlite": "SERIALIZABLE",
}


def default_isolation_level(dialect_name: str) -> str:
    """Isolation level used when none is configured."""
    return _DEFAULT_ISOLATION.get(dialect_name, "REPEATABLE READ")


# ═══════════════════════════════════════════════════════════════════════════════
# SQLite transaction control
# ═══════════════════════════════════════════════════════════════════════════════

def _install_sqlite_hooks(engine: AsyncEngine) -> None:
    """
    Take BEGIN away from the sqlite3 driver and emit it ourselves.

    The driver only starts a transaction right before DML, which would leave
    the reads of an order outside the transaction.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        mode = conn.get_execution_options().get(SQLITE_BEGIN, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")


# ═══════════════════════════════════════════════════════════════════════════════
# Database
# ═══════════════════════════════════════════════════════════════════════════════

class Database:
    """Owns the engine. One instance per process."""

    def __init__(self, engine: AsyncEngine, isolation_level: str | None = None) -> None:
        self.engine = engine
        self.dialect = engine.dialect.name
        self.isolation_level = isolation_level or default_isolation_level(self.dialect)
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)

        if self.dialect == "sqlite":
            _install_sqlite_hooks(engine)

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        isolation_level: str | None = None,
        echo: bool = False,
    ) -> Database:
        return cls(create_async_engine(url, echo=echo), isolation_level)

    @classmethod
    def from_settings(cls, settings: Settings) -> Database:
        return cls.from_url(
            settings.database_url,
            isolation_level=settings.isolation_level,
            echo=settings.echo_sql,
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Sessions
    # ───────────────────────────────────────────────────────────────────────────

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Session bound to one isolated transaction.

        The caller commits. Any other exit (return, exception) rolls back.
        """
        async with self._session_factory() as session:
            await session.connection(
                execution_options={
                    "isolation_level": self.isolation_level,
                    SQLITE_BEGIN: "IMMEDIATE",
                }
            )
            try:
                yield session
            finally:
                if session.in_transaction():
                    await session.rollback()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Plain read session with the engine's default isolation."""
        async with self._session_factory() as session:
            yield session

    # ───────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ───────────────────────────────────────────────────────────────────────────

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("schema created", dialect=self.dialect)

    async def dispose(self) -> None:
        await self.engine.dispose()


__all__ = ("Database", "default_isolation_level", "SQLITE_BEGIN")
