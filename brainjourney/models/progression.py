from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Literal, Optional, Set

TOTAL_UNITS = 90
Way = Literal[30, 60, 90]


class DayState(str, Enum):
    """Per-day state, derived on every refresh and never stored."""

    NOT_STARTED = "not_started"
    FAIL_LOCKED = "fail_locked"
    AWAITING_CHECK_IN = "awaiting_check_in"
    COMPLETED = "completed"
    JOURNEY_FINISHED = "journey_finished"


@dataclass
class ProgressionRecord:
    """
    The single persisted aggregate. Mutated only by the engine transitions.
    """

    start_date: Optional[datetime] = None
    current_way: int = 30
    completed_days: Set[int] = field(default_factory=set)
    checked_regions: Dict[int, List[int]] = field(default_factory=dict)
    max_day_reached: int = 0
    current_streak_days: int = 0
    last_fail_date: Optional[date] = None
    # highest unit unlocked in this journey; the unlocked set is 1..unlocked_through
    unlocked_through: int = 0

    @property
    def started(self) -> bool:
        return self.start_date is not None

    @property
    def last_completed_day(self) -> int:
        return max(self.completed_days, default=0)

    def unlocked_units(self) -> List[int]:
        return list(range(1, min(self.unlocked_through, TOTAL_UNITS) + 1))

    def selected_units(self) -> List[int]:
        units: Set[int] = set()
        for regions in self.checked_regions.values():
            units.update(regions)
        return sorted(units)

    def day_holding_unit(self, unit: int) -> Optional[int]:
        for day, regions in self.checked_regions.items():
            if unit in regions:
                return day
        return None

    def merge_units(self, day: int, units: List[int]) -> None:
        if not units:
            return
        merged = set(self.checked_regions.get(day, []))
        merged.update(units)
        self.checked_regions[day] = sorted(merged)

    def discard_unit(self, day: int, unit: int) -> None:
        remaining = [u for u in self.checked_regions.get(day, []) if u != unit]
        if remaining:
            self.checked_regions[day] = remaining
        else:
            self.checked_regions.pop(day, None)

    def to_payload(self) -> dict:
        """Canonical (schema v3) JSON form."""
        return {
            "schemaVersion": 3,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "currentWay": self.current_way,
            "completedDays": sorted(self.completed_days),
            "checkedRegions": {str(day): list(units) for day, units in sorted(self.checked_regions.items())},
            "maxDayReached": self.max_day_reached,
            "currentStreakDays": self.current_streak_days,
            "lastFailDate": self.last_fail_date.isoformat() if self.last_fail_date else None,
            "unlockedThrough": self.unlocked_through,
        }


@dataclass
class DayStatus:
    current_day: int
    status: DayState
    started: bool = False
    missed_days: int = 0
    events: List[dict] = field(default_factory=list)


@dataclass
class CheckInResult:
    day: int
    status: DayStatus
    new_units: List[int] = field(default_factory=list)
    journey_finished: bool = False
    events: List[dict] = field(default_factory=list)


@dataclass
class ToggleResult:
    unit: int
    selected: bool
    auto_completed: bool
    status: DayStatus
    events: List[dict] = field(default_factory=list)
