"""Test fixtures — a fresh app and a throwaway database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own in-memory SQLite engine (StaticPool keeps the
   single connection alive) with the schema created from the models.
2. get_db is overridden to hand every request the same test session.
3. create_app() is called per test, so each test has its own
   ConnectionRegistry and dispatcher on app.state.

Realtime tests use FakeClock and RecordingSink instead of sleeping or
opening sockets.
"""

from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from droneflow.db.engine import get_db
from droneflow.db.models import Base
from droneflow.main import create_app
from droneflow.realtime.registry import ConnectionRegistry
from droneflow.realtime.sink import SinkClosedError

TEST_DB_URL = "sqlite+aiosqlite://"


# ─── Realtime fakes ──────────────────────────────────────


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSink:
    """Sink that keeps every frame; optionally fails on write or close."""

    def __init__(self, fail_writes: bool = False, fail_close: bool = False):
        self.frames: list[str] = []
        self.fail_writes = fail_writes
        self.fail_close = fail_close
        self.close_calls = 0
        self.write_attempts = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, frame: str) -> None:
        self.write_attempts += 1
        if self._closed:
            raise SinkClosedError("closed")
        if self.fail_writes:
            raise ConnectionResetError("peer went away")
        self.frames.append(frame)

    def close(self) -> None:
        self.close_calls += 1
        self._closed = True
        if self.fail_close:
            raise OSError("socket already torn down")

    def frames_of(self, event_type: str) -> list[str]:
        return [f for f in self.frames if f.startswith(f"event: {event_type}\n")]


class RecordingEventSink:
    """EventSink fake for service tests."""

    def __init__(self):
        self.events: list[tuple[str, object]] = []

    def emit(self, event_type: str, payload: object) -> None:
        self.events.append((event_type, payload))

    def types(self) -> list[str]:
        return [t for t, _ in self.events]


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def registry(clock) -> ConnectionRegistry:
    return ConnectionRegistry(clock=clock)


@pytest.fixture()
def event_sink() -> RecordingEventSink:
    return RecordingEventSink()


# ─── Database + HTTP ─────────────────────────────────────


@pytest_asyncio.fixture()
async def db_session():
    """Per-test session on a private in-memory database."""
    engine = create_async_engine(
        TEST_DB_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        try:
            yield session
        finally:
            await session.close()
    await engine.dispose()


@pytest.fixture()
def app():
    return create_app()


@pytest_asyncio.fixture()
async def client(app, db_session):
    """HTTP client with the app's get_db overridden for testing."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def subscribe(app, sink: Optional[RecordingSink] = None) -> RecordingSink:
    """Attach a recording subscriber directly to the app's registry."""
    sink = sink or RecordingSink()
    app.state.registry.admit(sink)
    return sink


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> None:
    """Poll until predicate() is truthy or fail the test."""
    import asyncio

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not met within timeout")
        await asyncio.sleep(interval)
