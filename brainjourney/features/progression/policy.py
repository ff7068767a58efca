"""Unlock policy: which units a day owns and how unlocks are gap-filled.

Pure functions on integers. A 60-day way gives 1.5 units per day, so day
ranges alternate between two and one units; ceilings keep them disjoint and
contiguous, and day_owning_unit is their exact inverse.
"""

from __future__ import annotations

from typing import Iterable, List

from brainjourney.core.config import ALLOWED_WAYS
from brainjourney.models.progression import TOTAL_UNITS


def is_valid_way(way) -> bool:
    return isinstance(way, int) and not isinstance(way, bool) and way in ALLOWED_WAYS


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def day_range_end(day: int, way: int) -> int:
    """Unclipped last unit of ``day``; above 90 once the day is past the journey."""
    return _ceil_div(day * TOTAL_UNITS, way)


def units_for_day(day: int, way: int) -> List[int]:
    start = _ceil_div((day - 1) * TOTAL_UNITS, way) + 1
    end = min(day_range_end(day, way), TOTAL_UNITS)
    start = max(start, 1)
    if start > TOTAL_UNITS:
        return []
    return list(range(start, end + 1))


def gap_fill_unlock(last_unlocked_max: int, day: int, way: int) -> List[int]:
    """Units from ``last_unlocked_max + 1`` through the end of ``day``'s range.

    Keeps the unlocked set a contiguous prefix however often the way changes.
    """
    owned = units_for_day(day, way)
    if not owned:
        return []
    return list(range(last_unlocked_max + 1, min(owned[-1], TOTAL_UNITS) + 1))


def day_owning_unit(unit: int, way: int) -> int:
    # Same as ceil(unit / (90 / way)) for ways 30 and 90; exact for 60 as well
    return (unit - 1) * way // TOTAL_UNITS + 1


def current_streak(completed_days: Iterable[int]) -> int:
    """Length of the unbroken run ending at the highest completed day."""
    streak = 0
    expected = None
    for day in sorted(set(completed_days), reverse=True):
        if expected is None:
            expected = day
        if day != expected:
            break
        streak += 1
        expected -= 1
    return streak


def backfill_unlocked_through(completed_days: Iterable[int], selected_units: Iterable[int], way: int) -> int:
    """Rebuild the unlocked watermark for records that predate it.

    A completed day keeps all of its units clickable even when only part of
    it was selected, so this is the larger of the highest selected unit and
    the range end of the highest completed day.
    """
    top_selected = max(selected_units, default=0)
    last_day = max(completed_days, default=0)
    top_owned = min(day_range_end(last_day, way), TOTAL_UNITS) if last_day else 0
    return max(top_selected, top_owned)
