import math
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Make the project root importable without installing the package
ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from signal_feed.api.main import app  # noqa: E402
from signal_feed.client.state import FeedPage  # noqa: E402
from signal_feed.models.base import Base, get_db  # noqa: E402
from signal_feed.models import signal_events  # noqa: E402,F401
from signal_feed.schemas import SignalEvent  # noqa: E402

BASE_TIME = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


def _memory_engine(create_tables: bool = True):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    if create_tables:
        Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def engine():
    engine = _memory_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.close()


def _client_for(engine):
    testing_session = sessionmaker(bind=engine, autoflush=False)

    def override_get_db():
        db = testing_session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def client(engine):
    with _client_for(engine) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def broken_client():
    """API client whose database has no tables, so every query fails."""
    engine = _memory_engine(create_tables=False)
    with _client_for(engine) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    engine.dispose()


def make_event(event_id: int, minutes: float = 0, symbol: str = "BTC", signal: str = "BUY",
               price: float = 100.0, base: datetime = BASE_TIME) -> SignalEvent:
    return SignalEvent(
        id=event_id,
        symbol=symbol,
        price=price,
        signal=signal,
        timestamp=base + timedelta(minutes=minutes),
        additional_info="",
    )


class FakeFeed:
    """In-memory stand-in for ``GET /api/data`` with the server's ordering rules."""

    def __init__(self, page_size: int = 10):
        self.page_size = page_size
        self.events = []
        self.requests = []

    def add(self, minutes: float, symbol: str = "BTC", signal: str = "BUY") -> SignalEvent:
        event = make_event(len(self.events) + 1, minutes=minutes, symbol=symbol, signal=signal)
        self.events.append(event)
        return event

    def add_many(self, count: int, start_minutes: float = 0, step: float = 1) -> list:
        return [self.add(start_minutes + i * step) for i in range(count)]

    async def fetch_page(self, page: int) -> FeedPage:
        self.requests.append(page)
        ordered = sorted(self.events, key=lambda event: event.sort_key(), reverse=True)
        total_pages = math.ceil(len(ordered) / self.page_size)
        start = page * self.page_size
        return FeedPage(
            items=ordered[start:start + self.page_size],
            total_pages=total_pages,
            current_page=page,
            total_count=len(ordered),
        )


@pytest.fixture
def feed():
    return FakeFeed(page_size=10)
