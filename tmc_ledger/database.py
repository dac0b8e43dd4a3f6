"""
Database engine, session management, unit of work, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - engine: The async database engine (connection pool for production DBs)
  - AsyncSessionLocal: Factory for creating async database sessions
  - Base: Declarative base class that all ORM models inherit from
  - unit_of_work(): Explicit transaction scope for ledger calls made
    outside a request (jobs, scripts, other in-process collaborators)
  - run_in_transaction(): unit_of_work() plus retry of transient failures
  - get_db(): FastAPI dependency that provides one unit of work per request

Unit of work:
  Ledger services never commit. They lock rows, mutate balances and append
  ledger rows on the session they are handed; whoever opened the session
  owns the transaction. A unit of work commits only when its whole body
  succeeded and rolls back on any exception, including task cancellation,
  so a balance change can never be persisted without its ledger row.

SQLite note:
  SQLite ignores SELECT ... FOR UPDATE. Its database-level write lock gives
  the same serialisation for a single process; PostgreSQL (asyncpg) takes
  real row locks.
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from tmc_ledger.config import settings
from tmc_ledger.exceptions import PersistenceError, TMCError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# echo=True in debug mode logs all SQL statements
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
)

# expire_on_commit=False prevents lazy-load errors after commit: without it,
# touching an attribute on a committed object would trigger a synchronous
# DB call, which fails in async context.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


@asynccontextmanager
async def unit_of_work(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """
    Open a session whose work is committed atomically.

    Usage:
        async with unit_of_work() as db:
            await ledger_service.debit(db, account_id, 5, "consultation")

    Commits when the block exits normally; rolls back and re-raises on
    any exception (BaseException, so cancellation is covered too).
    """
    factory = session_factory or AsyncSessionLocal
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except BaseException:
            await session.rollback()
            raise


def is_transient(exc: BaseException) -> bool:
    """True for connection-level failures that are safe to retry."""
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


async def run_in_transaction(
    operation: Callable[..., Awaitable[T]],
    *args,
    attempts: int | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    **kwargs,
) -> T:
    """
    Run `operation(db, *args, **kwargs)` inside a fresh unit of work.

    Transient infrastructure failures are retried with a new session; every
    failed attempt has already been rolled back, so no partial state was
    ever committed. Business errors (TMCError) propagate on the first
    occurrence. When retries are exhausted a PersistenceError is raised.
    """
    max_attempts = attempts or settings.PERSISTENCE_RETRY_ATTEMPTS
    for attempt in range(1, max_attempts + 1):
        try:
            async with unit_of_work(session_factory) as db:
                return await operation(db, *args, **kwargs)
        except TMCError:
            raise
        except DBAPIError as exc:
            if not is_transient(exc):
                raise
            logger.warning(
                "Transient database failure in %s (attempt %d/%d): %s",
                getattr(operation, "__name__", operation), attempt, max_attempts, exc,
            )
            if attempt == max_attempts:
                raise PersistenceError(
                    f"Database unavailable after {max_attempts} attempts"
                ) from exc
    raise PersistenceError("No attempts were made")


async def get_db():
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...

    The session is committed when the request succeeds and rolled back on
    any exception. Domain errors flagged with `persist_state` (a payment
    capture the provider rejected) are committed so the terminal order
    state is kept, then re-raised for the handler.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except TMCError as exc:
            if exc.persist_state:
                await session.commit()
            else:
                await session.rollback()
            raise
        except BaseException:
            await session.rollback()
            raise
