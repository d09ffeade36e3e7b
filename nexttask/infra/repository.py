from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from nexttask.domain.entities import DEFAULT_PRIORITY, INITIAL_VERSION, IdempotencyRecord, TaskEntity
from nexttask.domain.enums import TaskStatus
from nexttask.domain.filters import TaskFilters

from .models import IdempotencyModel, TaskModel

logger = logging.getLogger(__name__)


def _coerce_int(value: Any, default: int | None) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _coerce_status(value: Any) -> TaskStatus:
    try:
        return TaskStatus(str(value or "").strip().upper())
    except ValueError:
        return TaskStatus.ACTIVE


def _to_entity(model: TaskModel) -> TaskEntity:
    return TaskEntity(
        task_id=model.task_id,
        title=model.title or "",
        notes=model.notes or "",
        tags=model.tags or "",
        source=model.source or "",
        status=_coerce_status(model.status),
        priority=_coerce_int(model.priority, DEFAULT_PRIORITY),
        effort_mins=_coerce_int(model.effort_mins, None),
        start_at=model.start_at or "",
        due_at=model.due_at or "",
        snoozed_until=model.snoozed_until or "",
        last_suggested_at=model.last_suggested_at or "",
        context_days=model.context_days or "",
        context_times=model.context_times or "",
        created_at=model.created_at or "",
        updated_at=model.updated_at or "",
        version=_coerce_int(model.version, INITIAL_VERSION),
    )


def _to_row(task: TaskEntity) -> dict[str, Any]:
    return {
        "task_id": task.task_id,
        "title": task.title,
        "notes": task.notes,
        "tags": task.tags,
        "source": task.source,
        "status": task.status.value,
        "priority": task.priority,
        "effort_mins": task.effort_mins,
        "start_at": task.start_at,
        "due_at": task.due_at,
        "snoozed_until": task.snoozed_until,
        "last_suggested_at": task.last_suggested_at,
        "context_days": task.context_days,
        "context_times": task.context_times,
        "created_at": task.created_at,
        "updated_at": task.updated_at,
        "version": task.version,
    }


def _apply_filters(stmt, filters: TaskFilters) -> object:
    if filters.status:
        stmt = stmt.where(TaskModel.status == filters.status.value)

    if filters.search:
        pattern = f"%{filters.search}%"
        stmt = stmt.where(
            or_(
                TaskModel.title.ilike(pattern),
                TaskModel.notes.ilike(pattern),
                TaskModel.tags.ilike(pattern),
            )
        )

    return stmt


class TaskRepository:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def read_all(self) -> list[TaskEntity]:
        with self._session_factory() as session:
            stmt = select(TaskModel).order_by(TaskModel.id.asc())
            return [_to_entity(task) for task in session.scalars(stmt)]

    def list_tasks(self, filters: TaskFilters) -> list[TaskEntity]:
        with self._session_factory() as session:
            stmt = select(TaskModel)
            stmt = _apply_filters(stmt, filters)
            stmt = stmt.order_by(TaskModel.updated_at.desc(), TaskModel.id.desc()).limit(filters.limit)
            return [_to_entity(task) for task in session.scalars(stmt)]

    def find_by_id(self, task_id: str) -> tuple[Optional[int], Optional[TaskEntity]]:
        with self._session_factory() as session:
            task = session.scalars(select(TaskModel).where(TaskModel.task_id == task_id)).first()
            if not task:
                return None, None
            return task.id, _to_entity(task)

    def insert(self, task: TaskEntity) -> TaskEntity:
        with self._session_factory() as session:
            session.add(TaskModel(**_to_row(task)))
            session.commit()
            return task

    def update(self, handle: int, task: TaskEntity, expected_version: int | None = None) -> Optional[TaskEntity]:
        """Write ``task`` over the row at ``handle``.

        With ``expected_version`` the write only lands if the stored version still
        matches; returns None when another writer got there first.
        """
        with self._session_factory() as session:
            stmt = update(TaskModel).where(TaskModel.id == handle)
            if expected_version is not None:
                if expected_version == INITIAL_VERSION:
                    stmt = stmt.where(
                        or_(TaskModel.version == expected_version, TaskModel.version.is_(None))
                    )
                else:
                    stmt = stmt.where(TaskModel.version == expected_version)
            result = session.execute(stmt.values(**_to_row(task)))
            session.commit()
            if result.rowcount == 0:
                return None
            return task


def _to_record(model: IdempotencyModel) -> IdempotencyRecord:
    return IdempotencyRecord(
        request_id=model.request_id,
        trace_id=model.trace_id,
        created_at=model.created_at,
        method=model.method,
        path=model.path,
        request_hash=model.request_hash,
        status_code=model.status_code,
        response_body=model.response_body,
    )


class IdempotencyRepository:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def find_by_key(self, key: str) -> Optional[IdempotencyRecord]:
        with self._session_factory() as session:
            record = session.get(IdempotencyModel, key)
            return _to_record(record) if record else None

    def append(self, record: IdempotencyRecord) -> bool:
        """Insert ``record`` unless its key is already taken. Returns False on a lost claim."""
        with self._session_factory() as session:
            session.add(
                IdempotencyModel(
                    request_id=record.request_id,
                    trace_id=record.trace_id,
                    created_at=record.created_at,
                    method=record.method,
                    path=record.path,
                    request_hash=record.request_hash,
                    status_code=record.status_code,
                    response_body=record.response_body,
                )
            )
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.info("Idempotency key %s already recorded", record.request_id)
                return False
            return True
