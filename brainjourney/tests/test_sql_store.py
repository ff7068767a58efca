from sqlalchemy import select

from brainjourney.core.database import check_connection, get_db_session, store_entries
from brainjourney.features.progression.service import ProgressionSession
from brainjourney.features.progression.store import SqlStore


def test_get_missing_key_returns_none(sqlite_db):
    assert SqlStore().get("brain-checkin-data") is None


def test_set_then_overwrite(sqlite_db):
    store = SqlStore()
    store.set("brain-label", "First")
    store.set("brain-label", "Second")

    assert store.get("brain-label") == "Second"
    with get_db_session() as session:
        rows = session.execute(select(store_entries)).all()
    assert len(rows) == 1


def test_session_persists_through_sql(sqlite_db, engine, clock):
    ProgressionSession(SqlStore(), engine=engine).check_in()
    clock.advance(days=1)

    view = ProgressionSession(SqlStore(), engine=engine).check_in()

    assert view.current_day == 2
    assert view.completed_days == [1, 2]
    assert view.streak_days == 2
    assert SqlStore().get("brain-checkin-data")["checkedRegions"] == {"1": [1, 2, 3], "2": [4, 5, 6]}


def test_check_connection(sqlite_db):
    assert check_connection() is True
