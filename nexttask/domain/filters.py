from __future__ import annotations

from dataclasses import dataclass

from .enums import TaskStatus


@dataclass(frozen=True)
class TaskFilters:
    status: TaskStatus | None = None
    search: str | None = None
    limit: int = 50
