"""Async SQLAlchemy engine, session factory and the transactional runner.

A single ``Database`` is constructed at process start (see ``main.lifespan``)
and handed to every operation that needs the store.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm.exc import StaleDataError

from questline.config import Settings
from questline.progression.exceptions import PersistenceFailure

logger = structlog.get_logger()

T = TypeVar("T")

UNIQUE_VIOLATION = "23505"


def is_lost_race(exc: IntegrityError) -> bool:
    """True when the violation is a duplicate key, meaning a concurrent create won.

    PostgreSQL drivers expose the SQLSTATE; SQLite only reports it in the message.
    """
    code = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if code:
        return code == UNIQUE_VIOLATION
    return "UNIQUE constraint failed" in str(exc.orig)


class Database:
    """Owns the engine and runs units of work with optimistic-concurrency retries."""

    def __init__(self, url: str, *, echo: bool = False, max_retries: int = 5) -> None:
        if url.startswith("sqlite"):
            self.engine: AsyncEngine = create_async_engine(url, echo=echo)
        else:
            self.engine = create_async_engine(
                url,
                pool_size=20,
                max_overflow=10,
                pool_pre_ping=True,
                echo=echo,
                connect_args={"statement_cache_size": 0},
            )
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self.max_retries = max(1, max_retries)

    @classmethod
    def from_settings(cls, settings: Settings) -> Database:
        return cls(settings.database_url, echo=settings.database_echo, max_retries=settings.db_max_retries)

    async def dispose(self) -> None:
        """Dispose of the engine and its connection pool."""
        await self.engine.dispose()

    async def run(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run ``fn(session, *args, **kwargs)`` in one transaction and commit.

        A version conflict (``StaleDataError``) or a lost create race
        (a duplicate-key ``IntegrityError``) rolls back and re-runs the whole
        function from a fresh read. Exhausting the retries, any other
        constraint violation, or any other store error raises
        ``PersistenceFailure`` with nothing committed. Domain errors raised by
        ``fn`` propagate unchanged after rollback.
        """
        attempt = 0
        while True:
            attempt += 1
            async with self.session_factory() as session:
                try:
                    result = await fn(session, *args, **kwargs)
                    await session.commit()
                    return result
                except (StaleDataError, IntegrityError) as exc:
                    await session.rollback()
                    if isinstance(exc, IntegrityError) and not is_lost_race(exc):
                        logger.error(
                            "store_constraint_violation",
                            operation=getattr(fn, "__name__", repr(fn)),
                            error=str(exc.orig),
                        )
                        msg = "Write rejected by a store constraint"
                        raise PersistenceFailure(msg, attempts=attempt) from exc
                    if attempt >= self.max_retries:
                        logger.warning(
                            "store_conflict_exhausted",
                            operation=getattr(fn, "__name__", repr(fn)),
                            attempts=attempt,
                            error=type(exc).__name__,
                        )
                        msg = "Write conflict could not be resolved"
                        raise PersistenceFailure(msg, attempts=attempt) from exc
                    logger.info(
                        "store_conflict_retry",
                        operation=getattr(fn, "__name__", repr(fn)),
                        attempt=attempt,
                        error=type(exc).__name__,
                    )
                except (SQLAlchemyError, OSError) as exc:
                    await session.rollback()
                    logger.error(
                        "store_failure",
                        operation=getattr(fn, "__name__", repr(fn)),
                        error=str(exc),
                    )
                    msg = "Document store unavailable"
                    raise PersistenceFailure(msg) from exc
