"""Progression session.

Owns the single progression record with exclusive write access: loads and
migrates it once, forwards user actions into the engine, persists after every
mutating transition and notifies the rendering surface.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Protocol

from brainjourney.core.clock import CalendarClock
from brainjourney.core.config import Settings, settings
from brainjourney.core.database import create_all_tables
from brainjourney.core.errors import ValidationError
from brainjourney.features.progression.engine import DayProgressionEngine
from brainjourney.features.progression.migration import load_record
from brainjourney.features.progression.models import ProgressionView
from brainjourney.features.progression.store import InMemoryStore, ProgressStore, SqlStore
from brainjourney.models.progression import DayState, DayStatus, ProgressionRecord

logger = logging.getLogger("brainjourney")


class Renderer(Protocol):
    def render(self, view: ProgressionView) -> None: ...


def button_label(status: DayStatus) -> str:
    if status.status is DayState.FAIL_LOCKED:
        return "Come back tomorrow"
    if status.status is DayState.JOURNEY_FINISHED:
        return "Journey Complete"
    if status.status is DayState.COMPLETED:
        return f"Day {status.current_day} Achieved"
    return f"Day {status.current_day} Check-in"


class ProgressionSession:
    """Single-writer session around one ProgressionRecord."""

    def __init__(
        self,
        store: ProgressStore,
        *,
        engine: Optional[DayProgressionEngine] = None,
        renderer: Optional[Renderer] = None,
        settings_obj: Optional[Settings] = None,
    ):
        cfg = settings_obj or settings
        self._store = store
        self._engine = engine or DayProgressionEngine(CalendarClock.from_name(cfg.LOCAL_TIMEZONE))
        self._renderer = renderer
        self._record_key = cfg.PROGRESS_STORAGE_KEY
        self._label_key = cfg.LABEL_STORAGE_KEY
        self._legacy_way_key = cfg.LEGACY_WAY_STORAGE_KEY
        self._default_way = cfg.DEFAULT_WAY
        self._default_label = cfg.DEFAULT_LABEL
        self._record: Optional[ProgressionRecord] = None
        self._label: Optional[str] = None

    @property
    def record(self) -> ProgressionRecord:
        if self._record is None:
            self.load()
        return self._record

    @property
    def label(self) -> str:
        if self._label is None:
            self._label = self._load_label()
        return self._label

    def load(self) -> ProgressionRecord:
        """Read and migrate the stored record; any failure yields a fresh record."""
        try:
            raw = self._store.get(self._record_key)
            if raw is None:
                record = ProgressionRecord(current_way=self._default_way)
            else:
                legacy_way = self._store.get(self._legacy_way_key)
                record = load_record(raw, legacy_way=legacy_way, default_way=self._default_way)
        except Exception:
            logger.exception("Error loading check-in data; starting with an empty record")
            record = ProgressionRecord(current_way=self._default_way)
        self._record = record
        logger.info(
            "Check-in data loaded",
            extra={"way": record.current_way, "last_completed_day": record.last_completed_day},
        )
        return record

    # User actions -----------------------------------------------------
    def view(self, now: Optional[datetime] = None) -> ProgressionView:
        moment = now or self._engine.clock.now()
        status = self._refresh(moment)
        return self._publish(status, events=status.events)

    def check_in(self, now: Optional[datetime] = None) -> ProgressionView:
        moment = now or self._engine.clock.now()
        events = self._refresh(moment).events
        result = self._engine.check_in(self.record, moment)
        if not result.journey_finished:
            self._persist()
        return self._publish(
            result.status,
            events=events + result.events,
            new_units=result.new_units,
            journey_finished=result.journey_finished,
        )

    def fail_reset(self, now: Optional[datetime] = None) -> ProgressionView:
        moment = now or self._engine.clock.now()
        status = self._engine.fail_reset(self.record, moment)
        self._persist()
        return self._publish(status, events=status.events)

    def toggle_unit(self, unit: int, now: Optional[datetime] = None) -> ProgressionView:
        moment = now or self._engine.clock.now()
        events = self._refresh(moment).events
        result = self._engine.toggle_unit(self.record, unit, moment)
        self._persist()
        return self._publish(
            result.status,
            events=events + result.events,
            new_units=[unit] if result.selected else [],
        )

    def set_way(self, way) -> bool:
        """Change the journey length; invalid values are rejected without mutation."""
        if not self._engine.set_way(self.record, way):
            return False
        self._persist()
        self.view()
        return True

    def set_label(self, text: str) -> str:
        label = (text or "").strip()
        if not label:
            raise ValidationError("Label cannot be empty")
        self._label = label
        try:
            self._store.set(self._label_key, label)
        except Exception:
            logger.exception("Error saving brain label")
        return label

    def payload(self) -> dict:
        return self.record.to_payload()

    # Internal helpers -------------------------------------------------
    def _refresh(self, moment: datetime) -> DayStatus:
        status = self._engine.refresh(self.record, moment)
        if status.missed_days:
            self._persist()
        return status

    def _persist(self) -> None:
        try:
            self._store.set(self._record_key, self.record.to_payload())
        except Exception:
            # In-memory state stays authoritative for the session
            logger.exception("Error saving check-in data")

    def _load_label(self) -> str:
        try:
            saved = self._store.get(self._label_key)
        except Exception:
            logger.exception("Error loading brain label")
            return self._default_label
        if isinstance(saved, str) and saved.strip():
            return saved
        return self._default_label

    def _publish(
        self,
        status: DayStatus,
        *,
        events: List[dict],
        new_units: Optional[List[int]] = None,
        journey_finished: bool = False,
    ) -> ProgressionView:
        record = self.record
        phase = status.status
        if not status.started and status.status is DayState.AWAITING_CHECK_IN:
            phase = DayState.NOT_STARTED
        view = ProgressionView(
            current_day=status.current_day,
            status=status.status,
            phase=phase,
            button_label=button_label(status),
            check_in_enabled=status.status is DayState.AWAITING_CHECK_IN,
            unlocked_units=record.unlocked_units(),
            selected_units=record.selected_units(),
            completed_days=sorted(record.completed_days),
            way=record.current_way,
            streak_days=record.current_streak_days,
            max_day_reached=record.max_day_reached,
            label=self.label,
            missed_days=status.missed_days,
            journey_finished=journey_finished or status.status is DayState.JOURNEY_FINISHED,
            new_units=new_units or [],
            events=events,
        )
        if self._renderer is not None:
            self._renderer.render(view)
        return view


def build_store(settings_obj: Optional[Settings] = None) -> ProgressStore:
    cfg = settings_obj or settings
    if cfg.STORE_BACKEND == "sql":
        create_all_tables()
        return SqlStore()
    return InMemoryStore()


_session: Optional[ProgressionSession] = None


def get_progression_session() -> ProgressionSession:
    """Process-wide session used by the HTTP routes."""
    global _session
    if _session is None:
        _session = ProgressionSession(build_store())
        _session.load()
    return _session


def reset_progression_session() -> None:
    global _session
    _session = None
