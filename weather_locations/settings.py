"""Centralized configuration management for the favorite locations API."""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load a local .env before the settings class reads the environment so that
# ``AppSettings()`` observes the same values as ``os.getenv`` callers.
load_dotenv()

# -- Application-wide constants -------------------------------------------------

DEFAULT_SQLITE_DATABASE_URL = "sqlite+aiosqlite:///./data/locations.db"
POSTGRES_ASYNC_PREFIX = "postgresql+psycopg://"
POSTGRES_SYNC_PREFIXES = ("postgres://", "postgresql://")
DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_ALLOWED_ORIGIN = "*"
DEFAULT_JWT_ALGORITHM = "HS256"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_CONNECT_TIMEOUT_SECONDS = 5.0
DEFAULT_OPERATION_TIMEOUT_SECONDS = 10.0
DEFAULT_FAVORITES_CHANNEL_PREFIX = "favorites:user"
DEFAULT_ENRICHMENT_QUEUE_KEY = "weather:enrichment:queue"


def _normalize_async_url(url: str) -> str:
    """Coerce sync PostgreSQL URLs into the async psycopg dialect."""

    for prefix in POSTGRES_SYNC_PREFIXES:
        if url.startswith(prefix):
            return url.replace(prefix, POSTGRES_ASYNC_PREFIX, 1)

    if url.startswith(POSTGRES_ASYNC_PREFIX) or url.startswith("sqlite"):
        return url

    raise RuntimeError(
        f"Expected a PostgreSQL connection string or SQLite fallback, received: {url}"
    )


class AppSettings(BaseSettings):
    """Typed configuration surface built on top of ``pydantic-settings``.

    One instance is created when the application is assembled and handed to
    every component that needs it; request handlers never read the
    environment directly.
    """

    _explicit_redis_url: bool = PrivateAttr(default=False)
    _explicit_allowed_origin: bool = PrivateAttr(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    def __init__(self, **values: object) -> None:  # noqa: D401 - short override explanation
        """Capture explicit overrides prior to delegating to ``BaseSettings``."""

        normalized_keys = {str(key).lower() for key in values}
        super().__init__(**values)
        self._explicit_redis_url = "redis_url" in normalized_keys
        self._explicit_allowed_origin = "allowed_origin" in normalized_keys
        redis_env = os.getenv("REDIS_URL")
        if redis_env is not None and redis_env.strip():
            self._explicit_redis_url = True
        origin_env = os.getenv("ALLOWED_ORIGIN")
        if origin_env is not None and origin_env.strip():
            self._explicit_allowed_origin = True

    database_url: str | None = Field(
        default=None,
        alias="DATABASE_URL",
        description=(
            "Primary (write) database URL. Postgres URLs supplied in sync format"
            " are coerced into the async psycopg driver string at runtime."
        ),
    )
    replica_database_url: str | None = Field(
        default=None,
        alias="DATABASE_REPLICA_URL",
        description=(
            "Optional read-replica URL used for plain listing reads. When unset"
            " the primary database serves reads as well."
        ),
    )
    use_sqlite: bool = Field(
        default=False,
        alias="USE_SQLITE",
        description="Force SQLite usage regardless of DATABASE_URL.",
    )
    connect_timeout_seconds: float = Field(
        default=DEFAULT_CONNECT_TIMEOUT_SECONDS,
        alias="DB_CONNECT_TIMEOUT_SECONDS",
        gt=0,
        description="Budget for establishing a database connection.",
    )
    operation_timeout_seconds: float = Field(
        default=DEFAULT_OPERATION_TIMEOUT_SECONDS,
        alias="DB_OPERATION_TIMEOUT_SECONDS",
        gt=0,
        description="Budget for a whole transaction, commit included.",
    )
    jwt_secret: str | None = Field(
        default=None,
        alias="JWT_SECRET",
        description="Shared secret used to verify bearer tokens.",
    )
    jwt_algorithm: str = Field(
        default=DEFAULT_JWT_ALGORITHM,
        alias="JWT_ALGORITHM",
        description="Signature algorithm accepted when decoding bearer tokens.",
    )
    allowed_origin: str = Field(
        default=DEFAULT_ALLOWED_ORIGIN,
        alias="ALLOWED_ORIGIN",
        description="Origin echoed in Access-Control-Allow-Origin on every response.",
    )
    redis_url: str = Field(
        default=DEFAULT_REDIS_URL,
        alias="REDIS_URL",
        description="Redis connection used for live updates and enrichment jobs.",
    )
    favorites_channel_prefix: str = Field(
        default=DEFAULT_FAVORITES_CHANNEL_PREFIX,
        alias="FAVORITES_CHANNEL_PREFIX",
        description="Pub/sub channel prefix; the user id is appended per message.",
    )
    enrichment_queue_key: str = Field(
        default=DEFAULT_ENRICHMENT_QUEUE_KEY,
        alias="ENRICHMENT_QUEUE_KEY",
        description="Redis list receiving weather enrichment jobs for new locations.",
    )
    add_max_attempts: int = Field(
        default=3,
        alias="ADD_MAX_ATTEMPTS",
        ge=1,
        description="Attempts made when a concurrent add claims the same display order.",
    )
    log_level: str = Field(
        default=DEFAULT_LOG_LEVEL,
        alias="LOG_LEVEL",
        description="Root logging level (e.g. INFO, DEBUG, WARNING).",
    )
    slow_query_threshold: float = Field(
        default=0.1,
        alias="SLOW_QUERY_THRESHOLD",
        description="Seconds after which queries are logged as slow.",
    )

    @property
    def resolved_database_url(self) -> str:
        """Return the async-compatible primary URL after applying fallbacks."""

        if self.use_sqlite or not self.database_url:
            return DEFAULT_SQLITE_DATABASE_URL
        return _normalize_async_url(self.database_url.strip())

    @property
    def resolved_replica_url(self) -> str | None:
        """Return the replica URL, or ``None`` when reads share the primary."""

        if self.use_sqlite or not self.replica_database_url:
            return None
        return _normalize_async_url(self.replica_database_url.strip())

    @property
    def database_type(self) -> str:
        """Return ``sqlite`` when using SQLite otherwise ``postgresql``."""

        if self.resolved_database_url.startswith("sqlite"):
            return "sqlite"
        return "postgresql"

    @property
    def log_level_numeric(self) -> int:
        """Translate ``log_level`` into the numeric constant expected by logging."""

        candidate = logging.getLevelName(self.log_level.upper())
        if isinstance(candidate, int):
            return candidate
        return logging.INFO

    def optional_config_warnings(self) -> list[str]:
        """Return human-readable warnings for unset optional configuration."""

        warnings: list[str] = []

        if not self.jwt_secret:
            warnings.append(
                "JWT_SECRET is not set - every authenticated request will fail"
            )

        if not self._explicit_redis_url and self.redis_url == DEFAULT_REDIS_URL:
            warnings.append(
                "REDIS_URL is not set - live updates and enrichment jobs target "
                "a localhost Redis instance"
            )

        if not self._explicit_allowed_origin:
            warnings.append(
                "ALLOWED_ORIGIN is not set - responses allow any origin "
                "(configure the frontend origin in production)"
            )

        if self.resolved_replica_url is None:
            warnings.append(
                "DATABASE_REPLICA_URL is not set - list reads use the primary database"
            )

        return warnings


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return a cached instance of :class:`AppSettings`."""

    return AppSettings()


__all__ = [
    "AppSettings",
    "DEFAULT_ALLOWED_ORIGIN",
    "DEFAULT_CONNECT_TIMEOUT_SECONDS",
    "DEFAULT_ENRICHMENT_QUEUE_KEY",
    "DEFAULT_FAVORITES_CHANNEL_PREFIX",
    "DEFAULT_JWT_ALGORITHM",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_OPERATION_TIMEOUT_SECONDS",
    "DEFAULT_REDIS_URL",
    "DEFAULT_SQLITE_DATABASE_URL",
    "POSTGRES_ASYNC_PREFIX",
    "POSTGRES_SYNC_PREFIXES",
    "get_settings",
]
