"""Database primitives for the location catalog and per-user favorites.

:class:`LocationStore` wraps a single :class:`AsyncSession` and exposes the
small set of reads and writes the ordering engine composes.  It never commits;
transaction boundaries belong to :class:`StoreGateway`, which opens a session
on the primary or replica engine, runs a unit of work and guarantees commit,
rollback and release on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import joinedload

from weather_locations.db.models import (
    DEPENDENT_WEATHER_MODELS,
    Location,
    UserFavoriteLocation,
)
from weather_locations.errors import (
    DisplayOrderConflictError,
    DuplicateLocationError,
    MissingLocationError,
    StorageError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LocationStore:
    """Session-bound reads and writes against the favorites tables."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_location(self, name: str, country_code: str) -> int | None:
        """Return the catalog id for an exact (name, country) match."""

        query = select(Location.location_id).where(
            Location.name == name,
            Location.country_code == country_code,
        )
        result = await self._session.execute(query)
        return result.scalar_one_or_none()

    async def create_location(
        self,
        name: str,
        country_code: str,
        latitude: float,
        longitude: float,
    ) -> int:
        """Insert a catalog row inside a SAVEPOINT.

        A unique-key collision rolls back only the savepoint and surfaces as
        :class:`DuplicateLocationError` so the caller can look the row up and
        carry on within the same transaction.
        """

        location = Location(
            name=name,
            country_code=country_code,
            latitude=latitude,
            longitude=longitude,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(location)
                await self._session.flush()
        except IntegrityError as exc:
            raise DuplicateLocationError(name, country_code) from exc
        return location.location_id

    async def location_exists(self, location_id: int) -> bool:
        query = select(Location.location_id).where(Location.location_id == location_id)
        result = await self._session.execute(query)
        return result.scalar_one_or_none() is not None

    async def list_favorites(self, user_id: str) -> Sequence[UserFavoriteLocation]:
        """Return the user's favorites with their locations, in display order."""

        query = (
            select(UserFavoriteLocation)
            .options(joinedload(UserFavoriteLocation.location))
            .where(UserFavoriteLocation.user_id == user_id)
            .order_by(
                UserFavoriteLocation.display_order.asc(),
                UserFavoriteLocation.created_at.asc(),
            )
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(query)
        return result.scalars().unique().all()

    async def get_favorite(
        self, user_id: str, location_id: int
    ) -> UserFavoriteLocation | None:
        """Return a single favorite joined with its location, if present."""

        query = (
            select(UserFavoriteLocation)
            .options(joinedload(UserFavoriteLocation.location))
            .where(
                UserFavoriteLocation.user_id == user_id,
                UserFavoriteLocation.location_id == location_id,
            )
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(query)
        return result.scalars().unique().one_or_none()

    async def max_display_order(self, user_id: str) -> int:
        """Return the highest display order, or ``-1`` for an empty list."""

        query = select(
            func.coalesce(func.max(UserFavoriteLocation.display_order), -1)
        ).where(UserFavoriteLocation.user_id == user_id)
        result = await self._session.execute(query)
        return int(result.scalar_one())

    async def count_favorites(self, user_id: str) -> int:
        query = (
            select(func.count())
            .select_from(UserFavoriteLocation)
            .where(UserFavoriteLocation.user_id == user_id)
        )
        result = await self._session.execute(query)
        return int(result.scalar_one())

    async def insert_favorite(
        self, user_id: str, location_id: int, display_order: int
    ) -> None:
        """Insert a favorite row inside a SAVEPOINT.

        Collisions on the primary key or on the (user, display_order)
        constraint roll back only the savepoint and raise
        :class:`DisplayOrderConflictError`.  A foreign-key failure because the
        location was deleted concurrently raises :class:`MissingLocationError`.
        """

        favorite = UserFavoriteLocation(
            user_id=user_id,
            location_id=location_id,
            display_order=display_order,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(favorite)
                await self._session.flush()
        except IntegrityError as exc:
            if not await self.location_exists(location_id):
                raise MissingLocationError(location_id) from exc
            raise DisplayOrderConflictError(
                f"Display order {display_order} is taken for user {user_id}"
            ) from exc

    async def delete_favorite(self, user_id: str, location_id: int) -> bool:
        """Delete a favorite; return ``False`` when there was nothing to delete."""

        statement = delete(UserFavoriteLocation).where(
            UserFavoriteLocation.user_id == user_id,
            UserFavoriteLocation.location_id == location_id,
        )
        result = await self._session.execute(statement)
        return bool(result.rowcount)

    async def set_display_order(
        self, user_id: str, location_id: int, new_order: int
    ) -> None:
        statement = (
            update(UserFavoriteLocation)
            .where(
                UserFavoriteLocation.user_id == user_id,
                UserFavoriteLocation.location_id == location_id,
            )
            .values(display_order=new_order)
        )
        await self._session.execute(statement)

    async def count_favorite_references(self, location_id: int) -> int:
        """Return how many users (any user) still favorite ``location_id``."""

        query = (
            select(func.count())
            .select_from(UserFavoriteLocation)
            .where(UserFavoriteLocation.location_id == location_id)
        )
        result = await self._session.execute(query)
        return int(result.scalar_one())

    async def delete_location_cascade(self, location_id: int) -> None:
        """Delete a catalog row together with every weather row keyed to it.

        Dependent rows are removed explicitly so the outcome does not hinge on
        the backend enforcing ``ON DELETE CASCADE``.
        """

        for model in DEPENDENT_WEATHER_MODELS:
            await self._session.execute(
                delete(model).where(model.location_id == location_id)
            )
        await self._session.execute(
            delete(Location).where(Location.location_id == location_id)
        )


class StoreGateway:
    """Scoped access to :class:`LocationStore` on the write or read path."""

    def __init__(
        self,
        write_sessions: async_sessionmaker[AsyncSession],
        read_sessions: async_sessionmaker[AsyncSession] | None = None,
        *,
        operation_timeout: float = 10.0,
    ) -> None:
        self._write_sessions = write_sessions
        self._read_sessions = read_sessions or write_sessions
        self._operation_timeout = operation_timeout

    async def run_in_transaction(
        self, work: Callable[[LocationStore], Awaitable[T]]
    ) -> T:
        """Run ``work`` in one write transaction.

        Commits when ``work`` returns, rolls back when anything raises, and
        closes the session either way.  Database failures and timeouts are
        reported as :class:`StorageError`; domain errors raised by ``work``
        propagate unchanged after the rollback.
        """

        async with self._write_sessions() as session:
            try:
                async with asyncio.timeout(self._operation_timeout):
                    result = await work(LocationStore(session))
                    await session.commit()
                return result
            except TimeoutError as exc:
                await session.rollback()
                logger.error(
                    "Favorites transaction exceeded %.1fs and was rolled back",
                    self._operation_timeout,
                )
                raise StorageError("Database operation timed out") from exc
            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error("Favorites transaction failed and was rolled back: %s", exc)
                raise StorageError("Database operation failed") from exc
            except BaseException:
                await session.rollback()
                raise

    async def run_read_only(
        self,
        work: Callable[[LocationStore], Awaitable[T]],
        *,
        primary: bool = False,
    ) -> T:
        """Run ``work`` on the replica (or the primary when ``primary``).

        Replica reads may trail a just-committed write; callers that must see
        their own write pass ``primary=True``.
        """

        sessions = self._write_sessions if primary else self._read_sessions
        async with sessions() as session:
            try:
                async with asyncio.timeout(self._operation_timeout):
                    return await work(LocationStore(session))
            except TimeoutError as exc:
                logger.error("Favorites read exceeded %.1fs", self._operation_timeout)
                raise StorageError("Database read timed out") from exc
            except SQLAlchemyError as exc:
                logger.error("Favorites read failed: %s", exc)
                raise StorageError("Database read failed") from exc
            finally:
                if session.in_transaction():
                    await session.rollback()


__all__ = ["LocationStore", "StoreGateway"]
