"""Temporal context: weekday code and day-part bucket for an instant.

Day-part boundaries come from configuration in one of three shapes: ``"HH:mm"``
strings, ``datetime.time``/``datetime`` values, or fractional-day numbers as
spreadsheets store them (``0.25`` or ``"0.25"`` is 06:00). All are normalized to
zero-padded ``HH:mm`` so bucket membership is a plain string comparison.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, time, tzinfo
from typing import Any

from nexttask.config import DEFAULT_BOUNDARIES

from .enums import WEEKDAY_CODES, TimeBucket

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class TemporalContext:
    weekday_short: str
    time_bucket: TimeBucket
    hm: str
    morning_start: str
    morning_end: str
    afternoon_end: str
    evening_end: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "weekdayShort": self.weekday_short,
            "timeBucket": self.time_bucket.value,
            "hm": self.hm,
            "morningStart": self.morning_start,
            "morningEnd": self.morning_end,
            "afternoonEnd": self.afternoon_end,
            "eveningEnd": self.evening_end,
        }


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _hm(hour: int, minute: int) -> str:
    return f"{_clamp(hour, 0, 23):02d}:{_clamp(minute, 0, 59):02d}"


def _from_fraction(value: float) -> str | None:
    if not math.isfinite(value):
        return None
    fraction = value % 1 if value >= 1 else value
    total = round(fraction * MINUTES_PER_DAY)
    return _hm(total // 60, total % 60)


def _from_text(value: str) -> str | None:
    text = value.strip()
    if ":" not in text:
        try:
            return _from_fraction(float(text))
        except ValueError:
            return None
    parts = text.split(":")
    try:
        return _hm(int(parts[0]), int(parts[1]))
    except ValueError:
        return None


def normalize_boundary(value: object, default: str) -> str:
    if value is None:
        return default
    if isinstance(value, (datetime, time)):
        return _hm(value.hour, value.minute)

    resolved = None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        resolved = _from_fraction(value)
    elif isinstance(value, str):
        resolved = _from_text(value)

    if resolved is None:
        logger.warning("Ignoring unreadable day-part boundary %r, using %s", value, default)
        return default
    return resolved


def resolve_context(now: datetime, tz: tzinfo, boundaries: dict[str, object] | None = None) -> TemporalContext:
    raw = dict(DEFAULT_BOUNDARIES)
    raw.update(boundaries or {})
    resolved = {key: normalize_boundary(raw[key], DEFAULT_BOUNDARIES[key]) for key in DEFAULT_BOUNDARIES}

    local = now.astimezone(tz)
    hm = _hm(local.hour, local.minute)

    if resolved["morning_start"] <= hm <= resolved["morning_end"]:
        bucket = TimeBucket.MORNING
    elif resolved["morning_end"] < hm <= resolved["afternoon_end"]:
        bucket = TimeBucket.AFTERNOON
    elif resolved["afternoon_end"] < hm <= resolved["evening_end"]:
        bucket = TimeBucket.EVENING
    else:
        bucket = TimeBucket.NIGHT

    return TemporalContext(
        weekday_short=WEEKDAY_CODES[local.weekday()],
        time_bucket=bucket,
        hm=hm,
        **resolved,
    )
