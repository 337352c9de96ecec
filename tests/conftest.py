"""Shared fixtures: a controllable clock, an in-memory store and a SQLite event database."""

from contextlib import asynccontextmanager

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shield.app.core.store import InMemoryCounterStore
from shield.app.db import models  # noqa: F401 - import to register models
from shield.app.db.base import Base

START_TIME = 1_700_000_000.0


class FakeClock:
    """Clock returning a fixed time until advanced."""

    def __init__(self, start: float = START_TIME):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> InMemoryCounterStore:
    return InMemoryCounterStore(clock=clock)


@pytest_asyncio.fixture
async def session_factory():
    """Session factory over a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)

    @asynccontextmanager
    async def factory():
        async with session_maker() as session:
            yield session

    yield factory
    await engine.dispose()
