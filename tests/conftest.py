from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from helpdesk.tickets.permissions import Actor, Role
from helpdesk.tickets.repository import TicketRepository
from helpdesk.tickets.service import TicketService

BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class TickingClock:
    """Deterministic clock that moves forward by ``step`` on every read."""

    def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(seconds=1)) -> None:
        self._current = start
        self._step = step

    def now(self) -> datetime:
        value = self._current
        self._current = self._current + self._step
        return value

    def peek(self) -> datetime:
        return self._current

    def advance(self, **kwargs: float) -> None:
        self._current = self._current + timedelta(**kwargs)


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def user() -> Actor:
    return Actor(id="user:1", role=Role.USER)


@pytest.fixture
def agent() -> Actor:
    return Actor(id="agent:2", role=Role.AGENT)


@pytest.fixture
def admin() -> Actor:
    return Actor(id="admin:3", role=Role.ADMIN)


@pytest_asyncio.fixture
async def engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def repository(engine: AsyncEngine) -> TicketRepository:
    repo = TicketRepository(async_sessionmaker(engine, expire_on_commit=False), engine=engine)
    await repo.ensure_schema()
    return repo


@pytest.fixture
def service(repository: TicketRepository, clock: TickingClock) -> TicketService:
    return TicketService(repository, clock=clock)
