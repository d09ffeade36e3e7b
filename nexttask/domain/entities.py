from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .enums import TaskStatus

DEFAULT_PRIORITY = 3
INITIAL_VERSION = 1


@dataclass(frozen=True)
class TaskEntity:
    task_id: str
    title: str
    notes: str = ""
    tags: str = ""
    source: str = ""
    status: TaskStatus = TaskStatus.ACTIVE
    priority: int = DEFAULT_PRIORITY
    effort_mins: int | None = None
    start_at: str = ""
    due_at: str = ""
    snoozed_until: str = ""
    last_suggested_at: str = ""
    context_days: str = ""
    context_times: str = ""
    created_at: str = ""
    updated_at: str = ""
    version: int = INITIAL_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "taskId": self.task_id,
            "title": self.title,
            "notes": self.notes,
            "tags": self.tags,
            "source": self.source,
            "status": self.status.value,
            "priority": self.priority,
            "effortMins": self.effort_mins,
            "startAt": self.start_at,
            "dueAt": self.due_at,
            "snoozedUntil": self.snoozed_until,
            "lastSuggestedAt": self.last_suggested_at,
            "contextDays": self.context_days,
            "contextTimes": self.context_times,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "version": self.version,
        }


@dataclass(frozen=True)
class IdempotencyRecord:
    request_id: str
    trace_id: str
    created_at: str
    method: str
    path: str
    request_hash: str
    status_code: int
    response_body: str
