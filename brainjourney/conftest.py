# brainjourney/conftest.py
from datetime import datetime, timezone

import pytest

from brainjourney.core.clock import FixedClock
from brainjourney.features.progression.engine import DayProgressionEngine
from brainjourney.features.progression.service import ProgressionSession, reset_progression_session
from brainjourney.features.progression.store import InMemoryStore

# Mid-morning UTC so +/- a few hours never crosses a calendar day
DAY_ONE = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    """Clock pinned to DAY_ONE in UTC; tests advance it explicitly."""
    return FixedClock(DAY_ONE)


@pytest.fixture
def engine(clock):
    return DayProgressionEngine(clock)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def session(store, engine):
    session = ProgressionSession(store, engine=engine)
    session.load()
    return session


@pytest.fixture
def sqlite_db():
    """
    Fresh in-memory SQLite database for SqlStore tests.

    Replaces the global engine for the duration of the test.
    """
    from brainjourney.core.database import create_all_tables, dispose_engine, drop_all_tables, init_engine

    dispose_engine()
    init_engine("sqlite://")
    create_all_tables()
    yield
    drop_all_tables()
    dispose_engine()


@pytest.fixture
def client(session):
    """TestClient whose routes share the fixture session."""
    from fastapi.testclient import TestClient

    from brainjourney.features.progression.service import get_progression_session
    from brainjourney.main import app

    app.dependency_overrides[get_progression_session] = lambda: session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    reset_progression_session()
