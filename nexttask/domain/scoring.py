"""
Deterministic "what next" ranking.

A task is scored by five independent, additive rules:
- Due urgency (0-40)
- Priority (5-25)
- Effort fit (0-10)
- Context specificity (0-15)
- Repeat cooldown (-20 or 0)

Each rule contributes one explanation line so a suggestion can be audited.
Ties are broken by earlier due date, higher priority, earlier creation.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo

from .context import TemporalContext
from .entities import TaskEntity
from .enums import TaskStatus, TimeBucket
from .time import parse_timestamp

SCORE_WEIGHTS = {
    "due_overdue": 40,
    "due_within_4h": 30,
    "due_within_24h": 20,
    "due_later": 10,
    "priority_step": 5,
    "effort_morning_fit": 10,
    "effort_default": 5,
    "effort_morning_min": 30,
    "effort_morning_max": 90,
    "context_days": 5,
    "context_times": 10,
    "cooldown_penalty": -20,
}

MAX_ALTERNATIVES = 3


@dataclass(frozen=True)
class ScoredTask:
    task: TaskEntity
    score: int
    reasons: tuple[str, ...]


@dataclass(frozen=True)
class SuggestionTouch:
    """Follow-up intent: stamp ``last_suggested_at`` on the chosen task."""

    task_id: str
    at: datetime


@dataclass(frozen=True)
class Selection:
    best: ScoredTask | None
    alternatives: list[ScoredTask] = field(default_factory=list)
    touch: SuggestionTouch | None = None


def split_codes(value: str) -> list[str]:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


def is_eligible(task: TaskEntity, now: datetime, ctx: TemporalContext, tz: tzinfo) -> bool:
    if task.status != TaskStatus.ACTIVE:
        return False

    start = parse_timestamp(task.start_at, tz)
    if start is not None and now < start:
        return False

    snoozed = parse_timestamp(task.snoozed_until, tz)
    if snoozed is not None and now < snoozed:
        return False

    days = {code.lower() for code in split_codes(task.context_days)}
    if days and ctx.weekday_short.lower() not in days:
        return False

    times = {code.upper() for code in split_codes(task.context_times)}
    if times and ctx.time_bucket.value not in times:
        return False

    return True


def _due_points(task: TaskEntity, now: datetime, tz: tzinfo) -> tuple[int, str]:
    due = parse_timestamp(task.due_at, tz)
    if due is None:
        return 0, "due: none (+0)"
    remaining = due - now
    if remaining < timedelta(0):
        points, label = SCORE_WEIGHTS["due_overdue"], "overdue"
    elif remaining <= timedelta(hours=4):
        points, label = SCORE_WEIGHTS["due_within_4h"], "within 4h"
    elif remaining <= timedelta(hours=24):
        points, label = SCORE_WEIGHTS["due_within_24h"], "within 24h"
    else:
        points, label = SCORE_WEIGHTS["due_later"], "later"
    return points, f"due: {label} (+{points})"


def _priority_points(task: TaskEntity) -> tuple[int, str]:
    priority = max(1, min(5, int(task.priority)))
    points = priority * SCORE_WEIGHTS["priority_step"]
    return points, f"priority: {priority} (+{points})"


def _effort_points(task: TaskEntity, ctx: TemporalContext) -> tuple[int, str]:
    if task.effort_mins is None:
        return 0, "effort: unknown (+0)"
    if ctx.time_bucket == TimeBucket.MORNING:
        fits = SCORE_WEIGHTS["effort_morning_min"] <= task.effort_mins <= SCORE_WEIGHTS["effort_morning_max"]
        points = SCORE_WEIGHTS["effort_morning_fit"] if fits else SCORE_WEIGHTS["effort_default"]
        label = "morning fit" if fits else "morning"
    else:
        points, label = SCORE_WEIGHTS["effort_default"], ctx.time_bucket.value.lower()
    return points, f"effort: {task.effort_mins}m {label} (+{points})"


def _context_points(task: TaskEntity) -> tuple[int, str]:
    points = 0
    matched = []
    if split_codes(task.context_days):
        points += SCORE_WEIGHTS["context_days"]
        matched.append("days")
    if split_codes(task.context_times):
        points += SCORE_WEIGHTS["context_times"]
        matched.append("times")
    return points, f"context: {'+'.join(matched) or 'any'} (+{points})"


def _cooldown_points(task: TaskEntity, now: datetime, tz: tzinfo, cooldown_mins: int) -> tuple[int, str]:
    last = parse_timestamp(task.last_suggested_at, tz)
    if last is None:
        return 0, "cooldown: never suggested (+0)"
    elapsed = now - last
    if timedelta(0) <= elapsed <= timedelta(minutes=cooldown_mins):
        points = SCORE_WEIGHTS["cooldown_penalty"]
        return points, f"cooldown: suggested {int(elapsed.total_seconds() // 60)}m ago ({points})"
    return 0, "cooldown: clear (+0)"


def score_task(
    task: TaskEntity,
    now: datetime,
    ctx: TemporalContext,
    tz: tzinfo,
    cooldown_mins: int = 120,
) -> ScoredTask:
    parts = [
        _due_points(task, now, tz),
        _priority_points(task),
        _effort_points(task, ctx),
        _context_points(task),
        _cooldown_points(task, now, tz, cooldown_mins),
    ]
    return ScoredTask(
        task=task,
        score=sum(points for points, _ in parts),
        reasons=tuple(reason for _, reason in parts),
    )


def _sort_key(scored: ScoredTask, tz: tzinfo) -> tuple:
    task = scored.task
    due = parse_timestamp(task.due_at, tz)
    created = parse_timestamp(task.created_at, tz)
    return (
        -scored.score,
        due is None,
        due.timestamp() if due else 0.0,
        -task.priority,
        created.timestamp() if created else float("-inf"),
        task.task_id,
    )


def rank_tasks(
    tasks: list[TaskEntity],
    now: datetime,
    ctx: TemporalContext,
    tz: tzinfo,
    cooldown_mins: int = 120,
) -> list[ScoredTask]:
    scored = [
        score_task(task, now, ctx, tz, cooldown_mins)
        for task in tasks
        if is_eligible(task, now, ctx, tz)
    ]
    return sorted(scored, key=lambda item: _sort_key(item, tz))


def select_next(
    tasks: list[TaskEntity],
    now: datetime,
    ctx: TemporalContext,
    tz: tzinfo,
    cooldown_mins: int = 120,
) -> Selection:
    ranked = rank_tasks(tasks, now, ctx, tz, cooldown_mins)
    if not ranked:
        return Selection(best=None)
    best = ranked[0]
    return Selection(
        best=best,
        alternatives=ranked[1 : 1 + MAX_ALTERNATIVES],
        touch=SuggestionTouch(task_id=best.task.task_id, at=now),
    )
