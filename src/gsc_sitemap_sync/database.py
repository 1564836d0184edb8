"""Database engine and session management utilities."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from gsc_sitemap_sync.config import Settings, get_settings
from gsc_sitemap_sync.models import Base

SQLITE_BUSY_TIMEOUT_SECONDS = 30

_database_logger = logging.getLogger("gsc_sitemap_sync.database")

_ORPHAN_QUERIES: tuple[tuple[str, str], ...] = (
    (
        "pages_without_website",
        """
        SELECT COUNT(*)
        FROM pages AS p
        LEFT JOIN websites AS w ON w.id = p.website_id
        WHERE w.id IS NULL
        """,
    ),
    (
        "job_details_without_job",
        """
        SELECT COUNT(*)
        FROM indexing_job_details AS d
        LEFT JOIN indexing_jobs AS j ON j.id = d.job_id
        WHERE j.id IS NULL
        """,
    ),
)


def _is_sqlite_url(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "sqlite"


def _ensure_sqlite_database_file(database_url: str) -> None:
    parsed_url = make_url(database_url)
    if parsed_url.get_backend_name() != "sqlite":
        return

    database_path = parsed_url.database
    if database_path is None or database_path in {":memory:", ""}:
        return
    if database_path.startswith("file:"):
        return

    resolved_path = Path(database_path)
    if not resolved_path.is_absolute():
        resolved_path = Path.cwd() / resolved_path

    resolved_path.parent.mkdir(parents=True, exist_ok=True)
    resolved_path.touch(exist_ok=True)


def _configure_sqlite_pragmas(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def apply_sqlite_pragmas(dbapi_connection: Any, _: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.close()


def build_engine(database_url: str) -> AsyncEngine:
    """Create an async engine, applying SQLite pragmas when relevant."""

    connect_args: dict[str, int] = {}
    if _is_sqlite_url(database_url):
        connect_args["timeout"] = SQLITE_BUSY_TIMEOUT_SECONDS

    engine = create_async_engine(
        database_url,
        pool_pre_ping=True,
        connect_args=connect_args,
    )
    if _is_sqlite_url(database_url):
        _configure_sqlite_pragmas(engine)
    return engine


settings: Settings = get_settings()
_ensure_sqlite_database_file(settings.DATABASE_URL)
engine = build_engine(settings.DATABASE_URL)

AsyncSessionFactory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Yield a transaction-scoped session with automatic commit/rollback."""

    session = AsyncSessionFactory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def initialize_database() -> None:
    """Create known tables and verify SQLite WAL mode when applicable."""

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)

        if not _is_sqlite_url(str(connection.engine.url)):
            return

        wal_mode = (await connection.execute(text("PRAGMA journal_mode;"))).scalar_one()
        if str(wal_mode).lower() != "wal":
            raise RuntimeError(
                f"SQLite WAL mode was not enabled. Current mode: {wal_mode}"
            )


async def run_startup_database_health_check() -> dict[str, int]:
    """Log orphaned rows left behind by interrupted deletes."""

    orphan_counts: dict[str, int] = {}
    async with engine.connect() as connection:
        for key, query in _ORPHAN_QUERIES:
            orphan_counts[key] = int(
                (await connection.execute(text(query))).scalar_one()
            )

    if sum(orphan_counts.values()) > 0:
        _database_logger.warning(
            "database_orphan_rows_detected",
            extra={"orphan_counts": orphan_counts},
        )
    else:
        _database_logger.info("database_orphan_check_ok")
    return orphan_counts


async def close_database() -> None:
    """Dispose database engine and release pooled connections."""

    await engine.dispose()


__all__ = [
    "AsyncSessionFactory",
    "build_engine",
    "close_database",
    "engine",
    "initialize_database",
    "run_startup_database_health_check",
    "session_scope",
]
