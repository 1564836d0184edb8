"""Shared fixtures: a throwaway SQLite database per test."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
import os
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.sqlite")

from gsc_sitemap_sync.models import Base, User, Website

SessionScopeFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@dataclass
class DatabaseContext:
    engine: AsyncEngine
    session_scope: SessionScopeFactory


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncIterator[DatabaseContext]:
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'test-database.sqlite'}"
    engine = create_async_engine(database_url)
    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )

    @asynccontextmanager
    async def scoped_session() -> AsyncIterator[AsyncSession]:
        session = session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)

    try:
        yield DatabaseContext(engine=engine, session_scope=scoped_session)
    finally:
        await engine.dispose()


WebsiteFactory = Callable[..., Awaitable[Website]]


@pytest.fixture
def create_website(database: DatabaseContext) -> WebsiteFactory:
    """Insert a user-owned website and return it."""

    async def _create(
        domain: str = "example.com",
        *,
        email: str | None = None,
        **website_fields: Any,
    ) -> Website:
        async with database.session_scope() as session:
            user = User(email=email or f"owner@{domain}", name="Site Owner")
            session.add(user)
            await session.flush()

            website = Website(user_id=user.id, domain=domain, **website_fields)
            session.add(website)
            await session.flush()
            return website

    return _create
