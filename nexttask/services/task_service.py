from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, tzinfo
from typing import Any, Callable, Optional, Protocol

from nexttask.config import Settings
from nexttask.domain.context import resolve_context
from nexttask.domain.entities import INITIAL_VERSION, TaskEntity
from nexttask.domain.enums import TaskStatus
from nexttask.domain.errors import NotFoundError, ValidationError, VersionConflictError
from nexttask.domain.filters import TaskFilters
from nexttask.domain.scoring import SuggestionTouch, is_eligible, select_next
from nexttask.domain.time import format_timestamp, parse_timestamp, resolve_timezone
from nexttask.infra.clock import Clock

from .patching import apply_patch, normalize_fields
from .validation import coerce_int, is_blank, validate_create, validate_patch

logger = logging.getLogger(__name__)

SNOOZE_MINUTES_RANGE = (1, 30 * 24 * 60)
WRITE_ATTEMPTS = 5


class TaskStore(Protocol):
    def read_all(self) -> list[TaskEntity]:
        ...

    def list_tasks(self, filters: TaskFilters) -> list[TaskEntity]:
        ...

    def find_by_id(self, task_id: str) -> tuple[Optional[int], Optional[TaskEntity]]:
        ...

    def insert(self, task: TaskEntity) -> TaskEntity:
        ...

    def update(self, handle: int, task: TaskEntity, expected_version: int | None = None) -> Optional[TaskEntity]:
        ...


def _new_task_id() -> str:
    return uuid.uuid4().hex


class TaskService:
    def __init__(self, repo: TaskStore, clock: Clock, id_factory: Callable[[], str] = _new_task_id) -> None:
        self._repo = repo
        self._clock = clock
        self._id_factory = id_factory

    def list_tasks(
        self,
        settings: Settings,
        status: str | None = None,
        search: str | None = None,
        limit: object = None,
    ) -> list[TaskEntity]:
        return self._repo.list_tasks(self._build_filters(settings, status, search, limit))

    def get_task(self, task_id: str) -> TaskEntity:
        _, task = self._load(task_id)
        return task

    def create_task(self, payload: Any, settings: Settings) -> TaskEntity:
        tz = resolve_timezone(settings.timezone)
        validate_create(payload, tz)
        now = format_timestamp(self._clock.now(), tz)
        task = TaskEntity(
            task_id=self._id_factory(),
            created_at=now,
            updated_at=now,
            version=INITIAL_VERSION,
            **normalize_fields(payload, tz),
        )
        created = self._repo.insert(task)
        logger.info("Created task %s", created.task_id)
        return created

    def patch_task(
        self,
        task_id: str,
        patch: Any,
        settings: Settings,
        if_match: int | None = None,
    ) -> TaskEntity:
        tz = resolve_timezone(settings.timezone)

        def change(existing: TaskEntity) -> TaskEntity:
            validate_patch(patch, existing, tz)
            return apply_patch(existing, patch, tz)

        return self._commit(task_id, change, tz, if_match)

    def complete_task(self, task_id: str, settings: Settings, if_match: int | None = None) -> TaskEntity:
        tz = resolve_timezone(settings.timezone)

        def change(existing: TaskEntity) -> TaskEntity | None:
            if existing.status == TaskStatus.COMPLETED:
                return None
            return replace(existing, status=TaskStatus.COMPLETED)

        return self._commit(task_id, change, tz, if_match)

    def snooze_task(
        self,
        task_id: str,
        body: Any,
        settings: Settings,
        if_match: int | None = None,
    ) -> TaskEntity:
        tz = resolve_timezone(settings.timezone)

        def change(existing: TaskEntity) -> TaskEntity:
            until = self._snooze_until(body, tz)
            return replace(existing, snoozed_until=format_timestamp(until, tz))

        return self._commit(task_id, change, tz, if_match)

    def next_task(self, settings: Settings, now: datetime | None = None) -> dict[str, Any]:
        tz = resolve_timezone(settings.timezone)
        now = now or self._clock.now()
        ctx = resolve_context(now, tz, settings.boundaries)
        selection = select_next(self._repo.read_all(), now, ctx, tz, settings.cooldown_mins)

        best = None
        if selection.best is not None:
            task = selection.best.task
            if selection.touch is not None:
                task = self._record_suggestion(selection.touch, tz) or task
            best = {
                "task": task.to_dict(),
                "score": selection.best.score,
                "reasons": list(selection.best.reasons),
            }

        return {
            "now": format_timestamp(now, tz),
            "context": ctx.to_dict(),
            "best": best,
            "alternatives": [
                {"taskId": item.task.task_id, "score": item.score} for item in selection.alternatives
            ],
        }

    def summary(self, settings: Settings) -> dict[str, Any]:
        tz = resolve_timezone(settings.timezone)
        now = self._clock.now()
        ctx = resolve_context(now, tz, settings.boundaries)
        today = now.astimezone(tz).date()
        tasks = self._repo.read_all()

        by_status = {status.value: 0 for status in TaskStatus}
        overdue = due_today = snoozed = eligible = 0
        for task in tasks:
            by_status[task.status.value] += 1
            if task.status != TaskStatus.ACTIVE:
                continue
            due = parse_timestamp(task.due_at, tz)
            if due is not None and due < now:
                overdue += 1
            if due is not None and due.astimezone(tz).date() == today:
                due_today += 1
            until = parse_timestamp(task.snoozed_until, tz)
            if until is not None and until > now:
                snoozed += 1
            if is_eligible(task, now, ctx, tz):
                eligible += 1

        return {
            "total": len(tasks),
            "byStatus": by_status,
            "overdue": overdue,
            "dueToday": due_today,
            "snoozed": snoozed,
            "eligibleNow": eligible,
        }

    def _load(self, task_id: str) -> tuple[int, TaskEntity]:
        handle, task = self._repo.find_by_id(task_id)
        if handle is None or task is None:
            raise NotFoundError(f"Task {task_id} not found", {"taskId": task_id})
        return handle, task

    @staticmethod
    def _check_version(task: TaskEntity, if_match: int | None) -> None:
        if if_match is not None and if_match != task.version:
            logger.info("Version conflict on task %s: expected %s, at %s", task.task_id, if_match, task.version)
            raise VersionConflictError(task.task_id, task.version, if_match)

    def _commit(
        self,
        task_id: str,
        change: Callable[[TaskEntity], Optional[TaskEntity]],
        tz: tzinfo,
        if_match: int | None,
    ) -> TaskEntity:
        """Read, change and write back one task, bumping its version exactly once.

        Every write is conditioned on the version that was read. Without
        ``if_match`` a lost write is re-read and re-applied, so the last writer
        wins on top of the newest row; with it, the re-read surfaces the conflict.
        ``change`` returns None when there is nothing to write.
        """
        for _ in range(WRITE_ATTEMPTS):
            handle, existing = self._load(task_id)
            self._check_version(existing, if_match)
            updated = change(existing)
            if updated is None:
                return existing
            bumped = replace(
                updated,
                version=existing.version + 1,
                updated_at=format_timestamp(self._clock.now(), tz),
            )
            written = self._repo.update(handle, bumped, expected_version=existing.version)
            if written is not None:
                return written
            logger.info("Task %s changed under write at version %s, re-reading", task_id, existing.version)

        _, current = self._load(task_id)
        raise VersionConflictError(task_id, current.version, existing.version)

    def _record_suggestion(self, touch: SuggestionTouch, tz: tzinfo) -> TaskEntity | None:
        try:
            handle, task = self._repo.find_by_id(touch.task_id)
            if handle is None or task is None:
                return None
            stamped = replace(
                task,
                last_suggested_at=format_timestamp(touch.at, tz),
                updated_at=format_timestamp(self._clock.now(), tz),
                version=task.version + 1,
            )
            written = self._repo.update(handle, stamped, expected_version=task.version)
            if written is None:
                logger.warning(
                    "Could not record suggestion time for task %s: it moved past version %s",
                    touch.task_id,
                    task.version,
                )
            return written
        except Exception:  # noqa: BLE001
            logger.exception("Could not record suggestion time for task %s", touch.task_id)
            return None

    def _snooze_until(self, body: Any, tz: tzinfo) -> datetime:
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        if not is_blank(body.get("until")):
            until = parse_timestamp(body["until"], tz)
            if until is None:
                raise ValidationError("until must be an ISO-8601 datetime", {"fields": {"until": "invalid"}})
            return until
        if not is_blank(body.get("minutes")):
            minutes = coerce_int(body["minutes"])
            low, high = SNOOZE_MINUTES_RANGE
            if minutes is None or not low <= minutes <= high:
                raise ValidationError(
                    f"minutes must be an integer between {low} and {high}",
                    {"fields": {"minutes": "out of range"}},
                )
            return self._clock.now() + timedelta(minutes=minutes)
        raise ValidationError("Provide either until or minutes", {"fields": {"until": "required"}})

    @staticmethod
    def _build_filters(settings: Settings, status: str | None, search: str | None, limit: object) -> TaskFilters:
        parsed_status = None
        if not is_blank(status):
            try:
                parsed_status = TaskStatus(str(status).strip().upper())
            except ValueError:
                raise ValidationError(
                    f"status must be one of {', '.join(s.value for s in TaskStatus)}",
                    {"fields": {"status": str(status)}},
                ) from None

        size = settings.list_limit_default
        if not is_blank(limit):
            size = coerce_int(limit)
            if size is None or size < 1:
                raise ValidationError("limit must be a positive integer", {"fields": {"limit": str(limit)}})
        size = min(size, settings.list_limit_max)

        query = (search or "").strip() or None
        return TaskFilters(status=parsed_status, search=query, limit=size)
