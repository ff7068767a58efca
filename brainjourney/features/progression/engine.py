from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from brainjourney.core.clock import CalendarClock
from brainjourney.core.errors import AlreadyCheckedInError, FailLockedError, UnitLockedError, ValidationError
from brainjourney.core.logging import log_event
from brainjourney.features.progression.policy import (
    current_streak,
    day_owning_unit,
    day_range_end,
    gap_fill_unlock,
    is_valid_way,
)
from brainjourney.models.progression import (
    TOTAL_UNITS,
    CheckInResult,
    DayState,
    DayStatus,
    ProgressionRecord,
    ToggleResult,
)

logger = logging.getLogger("brainjourney")


class DayProgressionEngine:
    """Deterministic day progression and unlock state machine.

    Works on an explicit record passed into every transition. Each transition
    samples time once; callers may pass ``now`` to pin it.
    """

    def __init__(self, clock: Optional[CalendarClock] = None):
        self._clock = clock or CalendarClock()

    @property
    def clock(self) -> CalendarClock:
        return self._clock

    def refresh(self, record: ProgressionRecord, now: Optional[datetime] = None) -> DayStatus:
        moment = now or self._clock.now()
        today = self._clock.local_date(moment)

        if record.last_fail_date == today:
            return DayStatus(current_day=1, status=DayState.FAIL_LOCKED, started=record.started)

        if record.start_date is None:
            return DayStatus(current_day=1, status=DayState.AWAITING_CHECK_IN, started=False)

        start_day = self._clock.local_date(record.start_date)
        # A start date ahead of today (zone change) still counts as day 1
        expected_day = 1 if today < start_day else self._clock.days_between(start_day, today) + 1
        last_completed = record.last_completed_day

        if (
            last_completed > 0
            and expected_day > last_completed + 1
            # nothing is left to miss once the final day is done
            and not self._past_journey_end(last_completed + 1, record.current_way)
        ):
            return self._missed_day_reset(record, moment, expected_day, last_completed)

        if expected_day in record.completed_days:
            status = DayState.COMPLETED
        elif self._past_journey_end(expected_day, record.current_way):
            status = DayState.JOURNEY_FINISHED
        else:
            status = DayState.AWAITING_CHECK_IN
        return DayStatus(current_day=expected_day, status=status, started=True)

    def check_in(self, record: ProgressionRecord, now: Optional[datetime] = None) -> CheckInResult:
        moment = now or self._clock.now()
        status = self.refresh(record, moment)
        events: List[dict] = list(status.events)

        if status.status is DayState.FAIL_LOCKED:
            raise FailLockedError("Check-in is locked for the rest of the day")
        if status.status is DayState.COMPLETED:
            raise AlreadyCheckedInError(f"Day {status.current_day} is already checked in")

        day = status.current_day
        if status.status is DayState.JOURNEY_FINISHED:
            events.append(
                {
                    "type": "progress.journey_finished",
                    "payload": {"day": day, "way": record.current_way, "maxDayReached": record.max_day_reached},
                }
            )
            log_event("info", "progress.journey_finished", event_type="journey_finished", extra={"day": day})
            return CheckInResult(day=day, status=status, journey_finished=True, events=events)

        if record.start_date is None:
            record.start_date = moment
            day = 1

        # Gap fill resumes after the highest selected unit
        units = gap_fill_unlock(max(record.selected_units(), default=0), day, record.current_way)
        self._complete_day(record, day, units)

        events.append(
            {
                "type": "progress.checked_in",
                "payload": {"day": day, "units": units, "way": record.current_way, "streak": record.current_streak_days},
            }
        )
        log_event(
            "info",
            f"Checked in day {day}: units {units}",
            event_type="checked_in",
            extra={"current_day": day, "way": record.current_way},
        )
        return CheckInResult(
            day=day,
            status=self.refresh(record, moment),
            new_units=units,
            events=events,
        )

    def toggle_unit(self, record: ProgressionRecord, unit: int, now: Optional[datetime] = None) -> ToggleResult:
        if not isinstance(unit, int) or isinstance(unit, bool) or not 1 <= unit <= TOTAL_UNITS:
            raise ValidationError(f"Unit must be between 1 and {TOTAL_UNITS}")

        moment = now or self._clock.now()
        status = self.refresh(record, moment)
        events: List[dict] = list(status.events)

        if status.status is DayState.FAIL_LOCKED:
            raise FailLockedError("Units are locked for the rest of the day")

        holder = record.day_holding_unit(unit)
        if holder is not None:
            # Cosmetic only: completion and streak are untouched
            record.discard_unit(holder, unit)
            return ToggleResult(
                unit=unit,
                selected=False,
                auto_completed=False,
                status=self.refresh(record, moment),
                events=events,
            )

        owner = day_owning_unit(unit, record.current_way)
        auto_completed = False
        if owner == status.current_day and status.status is DayState.AWAITING_CHECK_IN:
            if record.start_date is None:
                record.start_date = moment
            self._complete_day(record, owner, [unit])
            auto_completed = True
            events.append(
                {
                    "type": "progress.auto_completed",
                    "payload": {"day": owner, "unit": unit, "streak": record.current_streak_days},
                }
            )
            log_event("info", f"Day {owner} completed by selecting unit {unit}", event_type="auto_completed")
        elif unit > record.unlocked_through:
            raise UnitLockedError(f"Unit {unit} is not unlocked yet")

        record.merge_units(owner, [unit])
        record.unlocked_through = max(record.unlocked_through, unit)
        return ToggleResult(
            unit=unit,
            selected=True,
            auto_completed=auto_completed,
            status=self.refresh(record, moment),
            events=events,
        )

    def fail_reset(self, record: ProgressionRecord, now: Optional[datetime] = None) -> DayStatus:
        moment = now or self._clock.now()
        lost_day = record.last_completed_day
        self.clear_progress(record)
        record.last_fail_date = self._clock.local_date(moment)

        log_event(
            "info",
            f"Journey failed at day {lost_day}; locked until tomorrow",
            event_type="fail_reset",
            extra={"max_day_reached": record.max_day_reached},
        )
        status = self.refresh(record, moment)
        status.events.append(
            {
                "type": "progress.failed",
                "payload": {"lastCompletedDay": lost_day, "maxDayReached": record.max_day_reached},
            }
        )
        return status

    def set_way(self, record: ProgressionRecord, way) -> bool:
        if not is_valid_way(way):
            logger.warning("Invalid way setting: %r", way)
            return False
        record.current_way = way
        log_event("info", f"Way setting updated to {way}", event_type="way_changed", extra={"way": way})
        return True

    @staticmethod
    def clear_progress(record: ProgressionRecord) -> None:
        """Clear the journey while keeping the way and the all-time watermark."""
        record.max_day_reached = max(record.max_day_reached, record.last_completed_day)
        record.completed_days = set()
        record.checked_regions = {}
        record.current_streak_days = 0
        record.start_date = None
        record.last_fail_date = None
        record.unlocked_through = 0

    # Internal helpers -------------------------------------------------
    def _missed_day_reset(
        self,
        record: ProgressionRecord,
        moment: datetime,
        expected_day: int,
        last_completed: int,
    ) -> DayStatus:
        missed_days = expected_day - last_completed - 1
        self.clear_progress(record)

        log_event(
            "warning",
            f"Missed {missed_days} day(s) after day {last_completed}; journey restarted",
            event_type="missed_day_reset",
            extra={"missed_days": missed_days, "max_day_reached": record.max_day_reached},
        )
        status = self.refresh(record, moment)
        status.missed_days = missed_days
        status.events.insert(
            0,
            {
                "type": "progress.missed",
                "payload": {
                    "missedDays": missed_days,
                    "lastCompletedDay": last_completed,
                    "maxDayReached": record.max_day_reached,
                },
            },
        )
        return status

    def _complete_day(self, record: ProgressionRecord, day: int, units: List[int]) -> None:
        record.completed_days.add(day)
        record.merge_units(day, units)
        owned_end = min(day_range_end(day, record.current_way), TOTAL_UNITS)
        record.unlocked_through = max(record.unlocked_through, owned_end, max(units, default=0))
        record.max_day_reached = max(record.max_day_reached, day)
        record.current_streak_days = current_streak(record.completed_days)

    @staticmethod
    def _past_journey_end(day: int, way: int) -> bool:
        return day_range_end(day, way) > TOTAL_UNITS
