from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from weather_locations.monitoring import setup_query_monitoring
from weather_locations.settings import AppSettings

logger = logging.getLogger(__name__)


def sanitize_database_url(url: str) -> str:
    """Sanitize database URL to hide password in logs."""
    if "://" not in url:
        return url

    scheme, rest = url.split("://", 1)

    if "@" in rest:
        auth, host_db = rest.split("@", 1)
        if ":" in auth:
            user, _ = auth.split(":", 1)
            return f"{scheme}://{user}:***@{host_db}"
        return f"{scheme}://{auth}@{host_db}"

    return url


def _connect_args(url: str, connect_timeout: float) -> dict[str, Any]:
    """Return driver-specific arguments enforcing the connect budget."""

    if url.startswith("sqlite"):
        return {"timeout": connect_timeout}
    return {"connect_timeout": max(1, int(connect_timeout))}


def _enable_sqlite_transactions(engine: AsyncEngine) -> None:
    """Let SQLAlchemy own BEGIN so SAVEPOINTs and rollbacks behave on SQLite.

    The stdlib driver defers BEGIN until the first DML statement, which turns
    a leading SAVEPOINT into the outer transaction.  Emitting BEGIN ourselves
    keeps nested transactions nested, and the pragma makes ``ON DELETE
    CASCADE`` effective.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(connection: Any) -> None:
        connection.exec_driver_sql("BEGIN")


def create_engine(
    url: str,
    *,
    connect_timeout: float,
    slow_query_threshold: float | None = None,
    **engine_kwargs: Any,
) -> AsyncEngine:
    """Create an async engine with pooling suited to the backend in use."""

    options: dict[str, Any] = {
        "future": True,
        "echo": False,
        "connect_args": _connect_args(url, connect_timeout),
    }
    if not url.startswith("sqlite"):
        options.update(
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,  # Validate connections before use
            pool_recycle=1800,
            pool_timeout=connect_timeout,
        )
    options.update(engine_kwargs)

    engine = create_async_engine(url, **options)

    if url.startswith("sqlite"):
        _enable_sqlite_transactions(engine)

    if slow_query_threshold is not None:
        setup_query_monitoring(
            engine,
            slow_query_threshold=slow_query_threshold,
        )

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@dataclass
class DatabaseEngines:
    """Primary (write) and replica (read) engines for one application."""

    primary: AsyncEngine
    replica: AsyncEngine

    @property
    def has_dedicated_replica(self) -> bool:
        return self.replica is not self.primary

    async def dispose(self) -> None:
        await self.primary.dispose()
        if self.has_dedicated_replica:
            await self.replica.dispose()


def create_engines(settings: AppSettings) -> DatabaseEngines:
    """Build the engines described by ``settings``.

    Without a replica URL the primary engine doubles as the read path.
    """

    primary = create_engine(
        settings.resolved_database_url,
        connect_timeout=settings.connect_timeout_seconds,
        slow_query_threshold=settings.slow_query_threshold,
    )
    replica_url = settings.resolved_replica_url
    if replica_url is None:
        return DatabaseEngines(primary=primary, replica=primary)

    replica = create_engine(
        replica_url,
        connect_timeout=settings.connect_timeout_seconds,
        slow_query_threshold=settings.slow_query_threshold,
    )
    return DatabaseEngines(primary=primary, replica=replica)


__all__ = [
    "DatabaseEngines",
    "create_engine",
    "create_engines",
    "create_session_factory",
    "sanitize_database_url",
]
