"""Shared fixtures: in-memory database, fake clocks and a manual timer scheduler."""

import datetime
import os
import tempfile

os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="finance-tracker-logs-"))
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SESSION_SECRET_KEY", "test-session-secret")

import heapq
import itertools

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.main import create_app
from Security.security_logger import SecurityEventRecorder, SqlAlchemySecurityLogStore


class FakeClock:
    """Callable clock returning naive UTC datetimes that tests move by hand."""

    def __init__(self, start=datetime.datetime(2026, 1, 15, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += datetime.timedelta(**kwargs)


class FakeTimerHandle:
    def __init__(self, when, seq, callback, args):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __lt__(self, other):
        return (self.when, self.seq) < (other.when, other.seq)


class ManualScheduler:
    """Single-threaded timer facility driven by advance(); mirrors loop.call_later."""

    def __init__(self):
        self.now = 0.0
        self._queue = []
        self._seq = itertools.count()

    def call_later(self, delay, callback, *args):
        handle = FakeTimerHandle(self.now + delay, next(self._seq), callback, args)
        heapq.heappush(self._queue, handle)
        return handle

    def pending(self) -> int:
        return sum(1 for h in self._queue if not h.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while self._queue and self._queue[0].when <= target:
            handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = handle.when
            handle.callback(*handle.args)
        self.now = target


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def recorder(session_factory, clock):
    return SecurityEventRecorder(SqlAlchemySecurityLogStore(session_factory), clock=clock)


@pytest.fixture
def api_app(session_factory):
    return create_app(session_factory=session_factory)


@pytest.fixture
def client(api_app):
    # One event loop for the whole test so background audit writes can be drained.
    with TestClient(api_app) as test_client:
        yield test_client
