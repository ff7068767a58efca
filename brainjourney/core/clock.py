from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo

Instant = Union[datetime, str]
LocalDate = date


class CalendarClock:
    """Local calendar arithmetic for one observer.

    ``tz`` is the observer's zone; ``None`` means the host's local zone.
    """

    def __init__(self, tz: Optional[tzinfo] = None):
        self._tz = tz

    @classmethod
    def from_name(cls, name: Optional[str]) -> "CalendarClock":
        return cls(ZoneInfo(name) if name else None)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def local_date(self, instant: Optional[Instant] = None) -> LocalDate:
        moment = self.now() if instant is None else parse_instant(instant)
        # astimezone(None) converts to the host's local zone
        return moment.astimezone(self._tz).date()

    @staticmethod
    def days_between(a: Union[LocalDate, str], b: Union[LocalDate, str]) -> int:
        return abs(_as_date(b).toordinal() - _as_date(a).toordinal())


class FixedClock(CalendarClock):
    """Clock pinned to a given instant; advance() moves it forward."""

    def __init__(self, instant: datetime, tz: Optional[tzinfo] = timezone.utc):
        super().__init__(tz)
        self._instant = parse_instant(instant)

    def now(self) -> datetime:
        return self._instant

    def advance(self, **delta) -> datetime:
        self._instant = self._instant + timedelta(**delta)
        return self._instant


def parse_instant(value: Instant) -> datetime:
    """Return a tz-aware datetime; naive values and bare ISO strings are taken as UTC."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _as_date(value: Union[LocalDate, str]) -> LocalDate:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        return date.fromisoformat(value)
    return value
