from __future__ import annotations

from dataclasses import replace
from datetime import tzinfo
from typing import Any

from nexttask.domain.entities import DEFAULT_PRIORITY, TaskEntity
from nexttask.domain.enums import WEEKDAY_CODES, TaskStatus
from nexttask.domain.time import format_timestamp, parse_timestamp

from .validation import coerce_int, is_blank, split_list

FIELD_MAP = {
    "title": "title",
    "notes": "notes",
    "tags": "tags",
    "source": "source",
    "status": "status",
    "priority": "priority",
    "effortMins": "effort_mins",
    "startAt": "start_at",
    "dueAt": "due_at",
    "snoozedUntil": "snoozed_until",
    "contextDays": "context_days",
    "contextTimes": "context_times",
}

_WEEKDAY_LOOKUP = {code.lower(): code for code in WEEKDAY_CODES}


def _text(value: object) -> str:
    return "" if value is None else str(value).strip()


def _timestamp(value: object, tz: tzinfo) -> str:
    parsed = parse_timestamp(value, tz)
    return format_timestamp(parsed, tz) if parsed else ""


def _normalize(attr: str, value: Any, tz: tzinfo) -> Any:
    if attr in ("title", "notes", "source"):
        return _text(value)
    if attr == "tags":
        return ",".join(split_list(value))
    if attr == "context_days":
        return ",".join(_WEEKDAY_LOOKUP.get(code.lower(), code) for code in split_list(value))
    if attr == "context_times":
        return ",".join(code.upper() for code in split_list(value))
    if attr == "status":
        return TaskStatus(_text(value).upper()) if not is_blank(value) else TaskStatus.ACTIVE
    if attr == "priority":
        priority = coerce_int(value)
        return DEFAULT_PRIORITY if priority is None else priority
    if attr == "effort_mins":
        return coerce_int(value)
    if attr in ("start_at", "due_at", "snoozed_until"):
        return _timestamp(value, tz)
    return value


def normalize_fields(payload: dict[str, Any], tz: tzinfo) -> dict[str, Any]:
    """Map API keys to entity attributes, normalizing each supplied value."""
    return {
        FIELD_MAP[key]: _normalize(FIELD_MAP[key], value, tz)
        for key, value in payload.items()
        if key in FIELD_MAP
    }


def apply_patch(existing: TaskEntity, patch: dict[str, Any], tz: tzinfo) -> TaskEntity:
    # version and updated_at stay untouched; the caller bumps both once per write
    return replace(existing, **normalize_fields(patch, tz))
