from __future__ import annotations

from datetime import timezone

from nexttask.domain.entities import TaskEntity
from nexttask.domain.enums import TaskStatus
from nexttask.domain.time import resolve_timezone
from nexttask.services.patching import apply_patch, normalize_fields

UTC = timezone.utc

EXISTING = TaskEntity(
    task_id="t1",
    title="Write report",
    notes="draft",
    tags="work",
    due_at="2024-01-16T09:00:00+00:00",
    created_at="2024-01-01T00:00:00+00:00",
    updated_at="2024-01-02T00:00:00+00:00",
    version=4,
)


def test_normalize_fields_trims_joins_and_uppercases() -> None:
    fields = normalize_fields(
        {
            "title": "  Plan sprint  ",
            "tags": [" work", "planning ", ""],
            "contextDays": "mon, fri",
            "contextTimes": ["morning", "Afternoon"],
            "status": "active",
            "priority": "4",
            "effortMins": "45",
            "idempotencyKey": "ignored",
        },
        UTC,
    )

    assert fields == {
        "title": "Plan sprint",
        "tags": "work,planning",
        "context_days": "Mon,Fri",
        "context_times": "MORNING,AFTERNOON",
        "status": TaskStatus.ACTIVE,
        "priority": 4,
        "effort_mins": 45,
    }


def test_timestamps_are_reformatted_in_configured_zone() -> None:
    helsinki = resolve_timezone("Europe/Helsinki")

    assert normalize_fields({"dueAt": "2024-01-15T10:00:00Z"}, UTC) == {
        "due_at": "2024-01-15T10:00:00+00:00"
    }
    assert normalize_fields({"dueAt": "2024-01-15T10:00:00Z"}, helsinki) == {
        "due_at": "2024-01-15T12:00:00+02:00"
    }
    assert normalize_fields({"startAt": "2024-01-15T10:00"}, helsinki) == {
        "start_at": "2024-01-15T10:00:00+02:00"
    }


def test_apply_patch_overwrites_only_supplied_fields() -> None:
    patched = apply_patch(EXISTING, {"title": " Final report ", "dueAt": ""}, UTC)

    assert patched.title == "Final report"
    assert patched.due_at == ""
    assert patched.notes == "draft"
    assert patched.tags == "work"
    assert patched.created_at == EXISTING.created_at


def test_apply_patch_leaves_version_and_updated_at_to_caller() -> None:
    patched = apply_patch(EXISTING, {"status": "completed"}, UTC)

    assert patched.status == TaskStatus.COMPLETED
    assert patched.version == 4
    assert patched.updated_at == EXISTING.updated_at


def test_blank_effort_clears_value() -> None:
    with_effort = apply_patch(EXISTING, {"effortMins": 30}, UTC)

    assert apply_patch(with_effort, {"effortMins": ""}, UTC).effort_mins is None
