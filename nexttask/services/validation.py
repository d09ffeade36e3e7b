from __future__ import annotations

from datetime import tzinfo
from typing import Any

from nexttask.domain.entities import TaskEntity
from nexttask.domain.enums import WEEKDAY_CODES, TaskStatus, TimeBucket
from nexttask.domain.errors import UnknownFieldError, ValidationError
from nexttask.domain.time import parse_timestamp

TITLE_MAX_LENGTH = 140
PRIORITY_RANGE = (1, 5)
EFFORT_RANGE = (1, 1440)

PATCHABLE_FIELDS = frozenset({
    "title",
    "notes",
    "status",
    "priority",
    "effortMins",
    "tags",
    "startAt",
    "dueAt",
    "snoozedUntil",
    "contextDays",
    "contextTimes",
})

TIMESTAMP_FIELDS = ("startAt", "dueAt", "snoozedUntil")

_WEEKDAYS = {code.lower() for code in WEEKDAY_CODES}
_BUCKETS = {bucket.value for bucket in TimeBucket}
_STATUSES = {status.value for status in TaskStatus}


def is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def split_list(value: object) -> list[str]:
    if is_blank(value):
        return []
    if isinstance(value, (list, tuple)):
        items = [str(item) for item in value if item is not None]
    else:
        items = str(value).split(",")
    return [item.strip() for item in items if item.strip()]


def coerce_int(value: object) -> int | None:
    """Integer value of ``value`` or None when it is not a whole number."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _check_fields(payload: dict[str, Any], tz: tzinfo, errors: dict[str, str]) -> None:
    if "title" in payload:
        title = "" if payload["title"] is None else str(payload["title"]).strip()
        if not title:
            errors["title"] = "title is required"
        elif len(title) > TITLE_MAX_LENGTH:
            errors["title"] = f"title must be at most {TITLE_MAX_LENGTH} characters"

    if "status" in payload and not is_blank(payload["status"]):
        if str(payload["status"]).strip().upper() not in _STATUSES:
            errors["status"] = f"status must be one of {', '.join(sorted(_STATUSES))}"

    if "priority" in payload and not is_blank(payload["priority"]):
        priority = coerce_int(payload["priority"])
        low, high = PRIORITY_RANGE
        if priority is None or not low <= priority <= high:
            errors["priority"] = f"priority must be an integer between {low} and {high}"

    if "effortMins" in payload and not is_blank(payload["effortMins"]):
        effort = coerce_int(payload["effortMins"])
        low, high = EFFORT_RANGE
        if effort is None or not low <= effort <= high:
            errors["effortMins"] = f"effortMins must be an integer between {low} and {high}"

    for key in TIMESTAMP_FIELDS:
        if key in payload and not is_blank(payload[key]):
            if parse_timestamp(payload[key], tz) is None:
                errors[key] = f"{key} must be an ISO-8601 datetime"

    if "contextDays" in payload:
        unknown = [code for code in split_list(payload["contextDays"]) if code.lower() not in _WEEKDAYS]
        if unknown:
            errors["contextDays"] = f"unknown weekday codes: {', '.join(unknown)}"

    if "contextTimes" in payload:
        unknown = [code for code in split_list(payload["contextTimes"]) if code.upper() not in _BUCKETS]
        if unknown:
            errors["contextTimes"] = f"unknown time buckets: {', '.join(unknown)}"


def _check_window(start_value: object, due_value: object, tz: tzinfo, errors: dict[str, str]) -> None:
    if "startAt" in errors or "dueAt" in errors:
        return
    start = parse_timestamp(start_value, tz)
    due = parse_timestamp(due_value, tz)
    if start is not None and due is not None and due < start:
        errors["dueAt"] = "dueAt must not be earlier than startAt"


def _raise_if_errors(errors: dict[str, str]) -> None:
    if errors:
        first = next(iter(errors.values()))
        raise ValidationError(first, {"fields": errors})


def _require_mapping(payload: object) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def validate_create(payload: object, tz: tzinfo) -> None:
    data = _require_mapping(payload)
    errors: dict[str, str] = {}
    if "title" not in data:
        errors["title"] = "title is required"
    _check_fields(data, tz, errors)
    _check_window(data.get("startAt"), data.get("dueAt"), tz, errors)
    _raise_if_errors(errors)


def validate_patch(patch: object, existing: TaskEntity, tz: tzinfo) -> None:
    data = _require_mapping(patch)
    unsupported = sorted(set(data) - PATCHABLE_FIELDS)
    if unsupported:
        raise UnknownFieldError(
            f"Unsupported patch field: {unsupported[0]}",
            {"fields": unsupported, "allowed": sorted(PATCHABLE_FIELDS)},
        )

    errors: dict[str, str] = {}
    _check_fields(data, tz, errors)
    if "startAt" in data or "dueAt" in data:
        _check_window(
            data["startAt"] if "startAt" in data else existing.start_at,
            data["dueAt"] if "dueAt" in data else existing.due_at,
            tz,
            errors,
        )
    _raise_if_errors(errors)
