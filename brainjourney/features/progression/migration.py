"""Persisted record schema migration.

Three shapes have been written to the store over time:

- v1: ``{startDate, checkIns: [{region, timestamp}]}``, one unit per check-in
  on what was implicitly a 90-day way.
- v2: ``{startDate, currentWay, checkIns: [{dayNumber, regions, timestamp, way}]}``.
- v3: the current record (``ProgressionRecord.to_payload``).

Payloads are upgraded one version at a time until they reach v3, then missing
fields are backfilled. Nothing outside this module looks at schema versions.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from enum import IntEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from brainjourney.core.clock import parse_instant
from brainjourney.core.errors import ValidationError
from brainjourney.features.progression.policy import (
    backfill_unlocked_through,
    current_streak,
    is_valid_way,
)
from brainjourney.models.progression import TOTAL_UNITS, ProgressionRecord

logger = logging.getLogger("brainjourney")

DEFAULT_WAY = 30
LEGACY_V1_WAY = 90


class SchemaMigrationError(ValidationError):
    code = "schema_migration_failed"


class SchemaVersion(IntEnum):
    V1 = 1
    V2 = 2
    V3 = 3


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class RegionCheckIn(_Lenient):
    region: int
    timestamp: Optional[str] = None


class DayCheckIn(_Lenient):
    dayNumber: int
    regions: List[int] = Field(default_factory=list)
    timestamp: Optional[str] = None
    way: Optional[int] = None


class PayloadV1(_Lenient):
    startDate: Optional[str] = None
    checkIns: List[RegionCheckIn] = Field(default_factory=list)


class PayloadV2(_Lenient):
    startDate: Optional[str] = None
    currentWay: Optional[int] = None
    checkIns: List[DayCheckIn] = Field(default_factory=list)


class PayloadV3(_Lenient):
    startDate: Optional[str] = None
    currentWay: Optional[int] = None
    completedDays: List[int] = Field(default_factory=list)
    checkedRegions: Dict[int, List[int]] = Field(default_factory=dict)
    maxDayReached: Optional[int] = None
    currentStreakDays: Optional[int] = None
    lastFailDate: Optional[str] = None
    unlockedThrough: Optional[int] = None


def detect_schema(raw: Dict[str, Any]) -> SchemaVersion:
    if raw.get("schemaVersion") == SchemaVersion.V3 or any(
        key in raw for key in ("completedDays", "checkedRegions", "maxDayReached")
    ):
        return SchemaVersion.V3

    check_ins = raw.get("checkIns")
    if isinstance(check_ins, list):
        first = check_ins[0] if check_ins else None
        if isinstance(first, dict) and "region" in first and "regions" not in first:
            return SchemaVersion.V1
        return SchemaVersion.V2

    return SchemaVersion.V3


def _upgrade_v1(payload: PayloadV1) -> Dict[str, Any]:
    return {
        "startDate": payload.startDate,
        "currentWay": LEGACY_V1_WAY,
        "checkIns": [
            {
                "dayNumber": index + 1,
                "regions": [entry.region],
                "timestamp": entry.timestamp,
                "way": LEGACY_V1_WAY,
            }
            for index, entry in enumerate(payload.checkIns)
        ],
    }


def _upgrade_v2(payload: PayloadV2) -> Dict[str, Any]:
    checked: Dict[int, set] = {}
    for entry in payload.checkIns:
        checked.setdefault(entry.dayNumber, set()).update(entry.regions)
    return {
        "startDate": payload.startDate,
        "currentWay": payload.currentWay,
        "completedDays": sorted({entry.dayNumber for entry in payload.checkIns}),
        "checkedRegions": {day: sorted(units) for day, units in checked.items()},
    }


_UPGRADES = {
    SchemaVersion.V1: (PayloadV1, _upgrade_v1),
    SchemaVersion.V2: (PayloadV2, _upgrade_v2),
}


def load_record(
    raw: Any,
    *,
    legacy_way: Any = None,
    default_way: int = DEFAULT_WAY,
) -> ProgressionRecord:
    """Upgrade a stored payload of any known shape into a ProgressionRecord.

    ``legacy_way`` is the value of the standalone way key older builds kept
    next to the record; it only applies when the record carries no way.
    Raises SchemaMigrationError when the payload cannot be read at all.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise SchemaMigrationError(f"Stored record is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise SchemaMigrationError(f"Stored record must be an object, got {type(raw).__name__}")

    version = detect_schema(raw)
    try:
        while version is not SchemaVersion.V3:
            model, upgrade = _UPGRADES[version]
            raw = upgrade(model.model_validate(raw))
            logger.info("Upgraded stored record from schema v%d", version)
            version = SchemaVersion(version + 1)
        payload = PayloadV3.model_validate(raw)
    except PydanticValidationError as exc:
        raise SchemaMigrationError(f"Stored record has an unreadable v{version} shape") from exc

    return _normalize(payload, legacy_way=legacy_way, default_way=default_way)


def migrate_payload(raw: Any, *, legacy_way: Any = None, default_way: int = DEFAULT_WAY) -> Dict[str, Any]:
    """Canonical v3 payload for ``raw``. Idempotent on its own output."""
    return load_record(raw, legacy_way=legacy_way, default_way=default_way).to_payload()


def _normalize(payload: PayloadV3, *, legacy_way: Any, default_way: int) -> ProgressionRecord:
    way = _resolve_way(payload.currentWay, legacy_way, default_way)

    completed = {day for day in payload.completedDays if day >= 1}
    checked: Dict[int, List[int]] = {}
    for day, units in payload.checkedRegions.items():
        valid = sorted({unit for unit in units if 1 <= unit <= TOTAL_UNITS})
        if day >= 1 and valid:
            checked[day] = valid
    selected = [unit for units in checked.values() for unit in units]

    unlocked = payload.unlockedThrough
    if unlocked is None:
        unlocked = backfill_unlocked_through(completed, selected, way)
    unlocked = min(max(unlocked, max(selected, default=0), 0), TOTAL_UNITS)

    return ProgressionRecord(
        start_date=_parse_start(payload.startDate),
        current_way=way,
        completed_days=completed,
        checked_regions=checked,
        max_day_reached=max(payload.maxDayReached or 0, max(completed, default=0)),
        # always derived; a stored value is never trusted
        current_streak_days=current_streak(completed),
        last_fail_date=_parse_fail_date(payload.lastFailDate),
        unlocked_through=unlocked,
    )


def _resolve_way(stored: Optional[int], legacy_way: Any, default_way: int) -> int:
    if is_valid_way(stored):
        return stored
    if stored is not None:
        logger.warning("Discarding invalid stored way %r", stored)
    if legacy_way is not None:
        try:
            candidate = int(legacy_way)
        except (TypeError, ValueError):
            candidate = None
        if is_valid_way(candidate):
            return candidate
    return default_way


def _parse_start(value: Optional[str]):
    if not value:
        return None
    try:
        return parse_instant(value)
    except ValueError:
        logger.warning("Discarding unreadable startDate %r", value)
        return None


def _parse_fail_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        logger.warning("Discarding unreadable lastFailDate %r", value)
        return None
