"""Query performance monitoring for the favorite locations service.

Slow statements are logged so that ordering rewrites or catalog lookups that
degrade under load show up in the application log.
"""

import logging
import time
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


def setup_query_monitoring(
    engine: AsyncEngine,
    slow_query_threshold: float = 0.1,
) -> None:
    """Set up database query performance monitoring.

    Args:
        engine: SQLAlchemy (async) engine to monitor
        slow_query_threshold: Log queries slower than this many seconds (default: 0.1s = 100ms)
    """
    if not hasattr(engine, "sync_engine"):
        logger.warning("Engine does not have sync_engine attribute, skipping query monitoring")
        return

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def receive_before_cursor_execute(
        conn: Any,
        cursor: Any,
        statement: str,
        parameters: Any,
        context: Any,
        executemany: bool,
    ) -> None:
        """Record query start time."""
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(engine.sync_engine, "after_cursor_execute")
    def receive_after_cursor_execute(
        conn: Any,
        cursor: Any,
        statement: str,
        parameters: Any,
        context: Any,
        executemany: bool,
    ) -> None:
        """Log slow queries after execution."""
        started = conn.info.get("query_start_time")
        if not started:
            return
        total = time.perf_counter() - started.pop()

        if total > slow_query_threshold:
            truncated_statement = statement[:500]
            if len(statement) > 500:
                truncated_statement += "..."

            # Parameters may carry user identifiers; keep them out of the log.
            logger.warning(
                "Slow query detected (%.3fs): %s",
                total,
                truncated_statement,
                extra={
                    "duration_seconds": total,
                    "threshold_seconds": slow_query_threshold,
                },
            )

    logger.info(
        "Query performance monitoring enabled (slow query threshold: %ss)",
        slow_query_threshold,
    )


__all__ = ["setup_query_monitoring"]
