"""Async database engine and transactional session scope.

SQLite (aiosqlite) is the default; a PostgreSQL URL (asyncpg) switches the
backend and brings the schema up to date with Alembic.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TypeVar

from sqlalchemy import event, text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from corebridge_licensing.errors import ConcurrencyConflict, StorageFailure
from corebridge_licensing.storage.models import Base

logger = logging.getLogger("corebridge.storage")

T = TypeVar("T")

# Project-root alembic/ directory (src/corebridge_licensing/storage/ -> root).
MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "alembic"


class Database:
    """Owns the engine and hands out sessions and transactions."""

    def __init__(
        self,
        url: str,
        *,
        transaction_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
        migrations_dir: Path | None = None,
    ) -> None:
        self.url = url
        self.transaction_attempts = max(1, transaction_attempts)
        self.retry_backoff_seconds = retry_backoff_seconds
        self.migrations_dir = migrations_dir or MIGRATIONS_DIR
        self._engine: AsyncEngine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    async def init(self) -> None:
        """Create the engine and the tables. Safe to call more than once."""
        if self._engine is not None:
            return

        if self.is_sqlite:
            db_path = self.url.split(":///", 1)[-1]
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._engine = create_async_engine(self.url, echo=False)

            @event.listens_for(self._engine.sync_engine, "connect")
            def set_sqlite_pragma(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
                # BEGIN is issued by the "begin" listener below.
                dbapi_conn.isolation_level = None
                cursor = dbapi_conn.cursor()
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.execute("PRAGMA busy_timeout=5000")
                cursor.close()

            @event.listens_for(self._engine.sync_engine, "begin")
            def begin_immediate(conn):  # type: ignore[no-untyped-def]
                # Hold the write lock for the whole transaction, across processes too.
                conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            await self._run_migrations()
            self._engine = create_async_engine(
                self.url,
                echo=False,
                pool_size=10,
                max_overflow=10,
            )

        self._session_factory = sessionmaker(  # type: ignore[call-overload]
            self._engine, class_=AsyncSession, expire_on_commit=False
        )

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("Database initialized (%s)", self._engine.url.render_as_string(hide_password=True))

    async def close(self) -> None:
        """Dispose of the connection pool."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    def session(self) -> AsyncSession:
        """Get a new database session."""
        if self._session_factory is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._session_factory()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Session with an open transaction: commit on success, rollback on any error."""
        async with self.session() as session:
            async with session.begin():
                yield session

    async def run_transaction(
        self,
        work: Callable[[AsyncSession], Awaitable[T]],
        *,
        attempts: int | None = None,
    ) -> T:
        """Run *work* in its own transaction, retrying transient conflicts.

        ``OperationalError`` (locked database, serialization failure) is retried
        with linear backoff. ``IntegrityError`` propagates unchanged so callers
        can react to constraint violations. Any other database error becomes a
        ``StorageFailure``.
        """
        attempts = attempts or self.transaction_attempts
        for attempt in range(1, attempts + 1):
            try:
                async with self.transaction() as session:
                    return await work(session)
            except IntegrityError:
                raise
            except OperationalError as exc:
                if attempt >= attempts:
                    logger.error("Transaction conflict persisted after %d attempts", attempts)
                    raise ConcurrencyConflict(
                        f"Transaction failed after {attempts} attempts"
                    ) from exc
                logger.warning(
                    "Transaction conflict (attempt %d/%d): %s", attempt, attempts, exc.orig
                )
                await asyncio.sleep(self.retry_backoff_seconds * attempt)
            except SQLAlchemyError as exc:
                logger.exception("Database operation failed")
                raise StorageFailure("Database operation failed") from exc
        raise AssertionError("unreachable")

    async def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            async with self.session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, RuntimeError):
            logger.warning("Database ping failed", exc_info=True)
            return False

    async def _run_migrations(self) -> None:
        """Bring the schema to the latest Alembic revision.

        Raises:
            StorageFailure: the migrations directory is missing or an upgrade failed.
        """
        from alembic import command
        from alembic.config import Config

        if not (self.migrations_dir / "env.py").is_file():
            raise StorageFailure(f"Alembic migrations not found at {self.migrations_dir}")

        alembic_cfg = Config()
        alembic_cfg.set_main_option("script_location", str(self.migrations_dir))
        alembic_cfg.set_main_option("sqlalchemy.url", self.url)
        try:
            await asyncio.to_thread(command.upgrade, alembic_cfg, "head")
        except Exception as exc:
            logger.exception("Alembic migration failed")
            raise StorageFailure("Database migration failed") from exc
        logger.info("Alembic migrations applied successfully")
