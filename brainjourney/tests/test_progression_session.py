import logging

import pytest

from brainjourney.core.errors import FailLockedError, ValidationError
from brainjourney.features.progression.service import ProgressionSession
from brainjourney.features.progression.store import InMemoryStore
from brainjourney.models.progression import DayState

RECORD_KEY = "brain-checkin-data"


class BrokenStore:
    def __init__(self, *, fail_get=True, fail_set=True):
        self.fail_get = fail_get
        self.fail_set = fail_set
        self.writes = 0

    def get(self, key):
        if self.fail_get:
            raise OSError("store offline")
        return None

    def set(self, key, value):
        self.writes += 1
        if self.fail_set:
            raise OSError("quota exceeded")


class RecordingRenderer:
    def __init__(self):
        self.views = []

    def render(self, view):
        self.views.append(view)


def test_initial_view(session):
    view = session.view()

    assert view.current_day == 1
    assert view.status is DayState.AWAITING_CHECK_IN
    assert view.phase is DayState.NOT_STARTED
    assert view.button_label == "Day 1 Check-in"
    assert view.check_in_enabled is True
    assert view.unlocked_units == []
    assert view.label == "My Brain Journey"
    assert view.way == 30


def test_check_in_persists_canonical_record(session, store):
    view = session.check_in()

    assert view.button_label == "Day 1 Achieved"
    assert view.check_in_enabled is False
    assert view.new_units == [1, 2, 3]
    assert view.selected_units == [1, 2, 3]
    saved = store.get(RECORD_KEY)
    assert saved["completedDays"] == [1]
    assert saved["checkedRegions"] == {"1": [1, 2, 3]}
    assert saved["schemaVersion"] == 3


def test_session_reloads_saved_state(store, engine, clock):
    first = ProgressionSession(store, engine=engine)
    first.check_in()
    clock.advance(days=1)

    second = ProgressionSession(store, engine=engine)
    view = second.view()

    assert view.current_day == 2
    assert view.completed_days == [1]
    assert view.unlocked_units == [1, 2, 3]


def test_legacy_store_is_migrated_on_load(engine, clock):
    store = InMemoryStore(
        {
            RECORD_KEY: {
                "startDate": clock.now().isoformat(),
                "checkIns": [{"region": 1, "timestamp": clock.now().isoformat()}],
            }
        }
    )
    session = ProgressionSession(store, engine=engine)

    view = session.view()

    assert view.way == 90
    assert view.status is DayState.COMPLETED
    assert view.button_label == "Day 1 Achieved"


def test_legacy_way_key_is_folded_in(engine):
    store = InMemoryStore({RECORD_KEY: {"startDate": None, "checkIns": []}, "brain-way": 60})
    session = ProgressionSession(store, engine=engine)

    assert session.record.current_way == 60


def test_store_read_failure_falls_back_to_empty_record(engine, caplog):
    session = ProgressionSession(BrokenStore(fail_set=False), engine=engine)

    with caplog.at_level(logging.ERROR, logger="brainjourney"):
        record = session.load()

    assert record.completed_days == set()
    assert record.current_way == 30
    assert any("Error loading check-in data" in r.getMessage() for r in caplog.records)


def test_corrupt_record_falls_back_to_empty_record(engine):
    store = InMemoryStore({RECORD_KEY: "{broken"})
    session = ProgressionSession(store, engine=engine)

    assert session.view().unlocked_units == []


def test_store_write_failure_keeps_memory_state(engine, caplog):
    store = BrokenStore(fail_get=False)
    session = ProgressionSession(store, engine=engine)

    with caplog.at_level(logging.ERROR, logger="brainjourney"):
        view = session.check_in()

    assert store.writes == 1
    assert view.completed_days == [1]
    assert session.record.completed_days == {1}
    assert any("Error saving check-in data" in r.getMessage() for r in caplog.records)


def test_missed_day_reset_is_persisted_and_reported(session, store, clock):
    session.check_in()
    clock.advance(days=5)

    view = session.view()

    assert view.missed_days == 4
    assert view.events[0]["type"] == "progress.missed"
    assert view.max_day_reached == 1
    assert store.get(RECORD_KEY)["completedDays"] == []


def test_fail_reset_locks_today(session, store, clock):
    session.check_in()

    view = session.fail_reset()

    assert view.status is DayState.FAIL_LOCKED
    assert view.button_label == "Come back tomorrow"
    assert view.check_in_enabled is False
    assert store.get(RECORD_KEY)["lastFailDate"] == clock.local_date().isoformat()
    with pytest.raises(FailLockedError):
        session.check_in()
    with pytest.raises(FailLockedError):
        session.toggle_unit(1)


def test_toggle_unit_auto_completes(session, store):
    view = session.toggle_unit(2)

    assert view.status is DayState.COMPLETED
    assert view.selected_units == [2]
    assert view.unlocked_units == [1, 2, 3]
    assert view.events[-1]["type"] == "progress.auto_completed"
    assert store.get(RECORD_KEY)["checkedRegions"] == {"1": [2]}


def test_set_way_validates_and_persists(session, store):
    assert session.set_way(60) is True
    assert store.get(RECORD_KEY)["currentWay"] == 60

    assert session.set_way(45) is False
    assert session.record.current_way == 60


def test_label_round_trip(session, store):
    assert session.set_label("  Focus  ") == "Focus"
    assert store.get("brain-label") == "Focus"

    fresh = ProgressionSession(store)
    assert fresh.label == "Focus"


def test_empty_label_rejected(session):
    with pytest.raises(ValidationError):
        session.set_label("   ")
    assert session.label == "My Brain Journey"


def test_renderer_sees_every_transition(store, engine):
    renderer = RecordingRenderer()
    session = ProgressionSession(store, engine=engine, renderer=renderer)

    session.view()
    session.check_in()
    session.toggle_unit(1)
    session.set_way(90)

    labels = [view.button_label for view in renderer.views]
    assert labels == ["Day 1 Check-in", "Day 1 Achieved", "Day 1 Achieved", "Day 1 Achieved"]
    assert renderer.views[2].selected_units == [2, 3]


def test_journey_finished_view(session, clock):
    session.set_way(90)
    for _ in range(90):
        session.check_in()
        clock.advance(days=1)

    view = session.check_in()

    assert view.journey_finished is True
    assert view.button_label == "Journey Complete"
    assert view.check_in_enabled is False
    assert view.unlocked_units == list(range(1, 91))
