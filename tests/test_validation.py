from __future__ import annotations

from datetime import timezone

import pytest

from nexttask.domain.entities import TaskEntity
from nexttask.domain.errors import UnknownFieldError, ValidationError
from nexttask.services.validation import validate_create, validate_patch

UTC = timezone.utc

EXISTING = TaskEntity(
    task_id="t1",
    title="Write report",
    start_at="2024-01-15T09:00:00+00:00",
    due_at="2024-01-16T09:00:00+00:00",
)


def test_minimal_create_payload_is_valid() -> None:
    validate_create({"title": "Buy milk"}, UTC)


def test_create_requires_title() -> None:
    with pytest.raises(ValidationError) as exc:
        validate_create({"notes": "no title"}, UTC)

    assert exc.value.code == "VALIDATION_ERROR"
    assert "title" in exc.value.details["fields"]


@pytest.mark.parametrize("title", ["", "   ", None, "x" * 141])
def test_create_rejects_bad_titles(title: object) -> None:
    with pytest.raises(ValidationError):
        validate_create({"title": title}, UTC)


def test_title_at_limit_is_accepted() -> None:
    validate_create({"title": "x" * 140}, UTC)


@pytest.mark.parametrize("priority", [0, 6, "high", True, 2.5])
def test_create_rejects_out_of_range_priority(priority: object) -> None:
    with pytest.raises(ValidationError) as exc:
        validate_create({"title": "t", "priority": priority}, UTC)

    assert "priority" in exc.value.details["fields"]


@pytest.mark.parametrize("priority", [1, 5, "4", 3.0])
def test_create_accepts_priority_in_range(priority: object) -> None:
    validate_create({"title": "t", "priority": priority}, UTC)


@pytest.mark.parametrize("effort", [0, 1441, "forever"])
def test_create_rejects_bad_effort(effort: object) -> None:
    with pytest.raises(ValidationError):
        validate_create({"title": "t", "effortMins": effort}, UTC)


def test_create_rejects_unparseable_dates() -> None:
    with pytest.raises(ValidationError) as exc:
        validate_create({"title": "t", "startAt": "someday"}, UTC)

    assert "startAt" in exc.value.details["fields"]


def test_create_rejects_due_before_start() -> None:
    with pytest.raises(ValidationError) as exc:
        validate_create(
            {"title": "t", "startAt": "2024-01-15T10:00:00Z", "dueAt": "2024-01-15T09:00:00Z"},
            UTC,
        )

    assert exc.value.details["fields"] == {"dueAt": "dueAt must not be earlier than startAt"}


def test_create_rejects_unknown_context_codes() -> None:
    with pytest.raises(ValidationError) as exc:
        validate_create({"title": "t", "contextDays": "Mon,Funday", "contextTimes": ["LUNCH"]}, UTC)

    assert set(exc.value.details["fields"]) == {"contextDays", "contextTimes"}


def test_create_rejects_non_object_body() -> None:
    with pytest.raises(ValidationError):
        validate_create(["title"], UTC)


def test_patch_rejects_fields_outside_allow_list() -> None:
    with pytest.raises(UnknownFieldError) as exc:
        validate_patch({"title": "ok", "version": 7, "source": "api"}, EXISTING, UTC)

    assert exc.value.code == "VALIDATION_ERROR"
    assert exc.value.details["fields"] == ["source", "version"]
    assert "title" in exc.value.details["allowed"]


def test_patch_rejects_unknown_status() -> None:
    with pytest.raises(ValidationError):
        validate_patch({"status": "DONE"}, EXISTING, UTC)


def test_patch_accepts_lowercase_status() -> None:
    validate_patch({"status": "canceled"}, EXISTING, UTC)


def test_patch_due_is_checked_against_stored_start() -> None:
    with pytest.raises(ValidationError):
        validate_patch({"dueAt": "2024-01-15T08:00:00Z"}, EXISTING, UTC)


def test_patch_start_is_checked_against_stored_due() -> None:
    with pytest.raises(ValidationError):
        validate_patch({"startAt": "2024-01-17T08:00:00Z"}, EXISTING, UTC)


def test_patch_moving_both_dates_together_is_valid() -> None:
    validate_patch(
        {"startAt": "2024-02-01T08:00:00Z", "dueAt": "2024-02-02T08:00:00Z"},
        EXISTING,
        UTC,
    )


def test_patch_clearing_start_lifts_ordering_check() -> None:
    validate_patch({"startAt": "", "dueAt": "2024-01-10T08:00:00Z"}, EXISTING, UTC)


def test_patch_title_rules_match_create() -> None:
    with pytest.raises(ValidationError):
        validate_patch({"title": "  "}, EXISTING, UTC)
