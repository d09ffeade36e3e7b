from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from nexttask.domain.entities import IdempotencyRecord, TaskEntity
from nexttask.domain.enums import TaskStatus
from nexttask.domain.filters import TaskFilters
from nexttask.infra.models import TaskModel
from nexttask.infra.repository import IdempotencyRepository, TaskRepository

ROOT = Path(__file__).resolve().parents[1]


def _task(task_id: str, **overrides) -> TaskEntity:
    fields = {"title": f"Task {task_id}", "updated_at": "2024-01-15T09:00:00+00:00"}
    fields.update(overrides)
    return TaskEntity(task_id=task_id, **fields)


def test_insert_find_and_read_all(session_factory) -> None:
    repo = TaskRepository(session_factory)
    repo.insert(_task("a", tags="home,errands", effort_mins=20))
    repo.insert(_task("b", status=TaskStatus.COMPLETED))

    handle, found = repo.find_by_id("a")

    assert handle is not None
    assert found == _task("a", tags="home,errands", effort_mins=20)
    assert [task.task_id for task in repo.read_all()] == ["a", "b"]
    assert repo.find_by_id("missing") == (None, None)


def test_blank_numeric_columns_get_defaults(session_factory) -> None:
    with session_factory() as session:
        session.add(TaskModel(task_id="legacy", title="Imported row", priority=None, version=None, status="odd"))
        session.commit()

    repo = TaskRepository(session_factory)
    handle, task = repo.find_by_id("legacy")

    assert task.priority == 3
    assert task.version == 1
    assert task.effort_mins is None
    assert task.status == TaskStatus.ACTIVE
    assert repo.update(handle, replace(task, version=2), expected_version=1) is not None
    assert repo.find_by_id("legacy")[1].version == 2


def test_conditional_update_detects_stale_version(session_factory) -> None:
    repo = TaskRepository(session_factory)
    repo.insert(_task("a"))
    handle, task = repo.find_by_id("a")

    assert repo.update(handle, replace(task, title="first", version=2), expected_version=1) is not None
    assert repo.update(handle, replace(task, title="second", version=2), expected_version=1) is None
    assert repo.find_by_id("a")[1].title == "first"


def test_unconditional_update_is_last_writer_wins(session_factory) -> None:
    repo = TaskRepository(session_factory)
    repo.insert(_task("a", version=5))
    handle, task = repo.find_by_id("a")

    repo.update(handle, replace(task, notes="overwritten", version=6))

    assert repo.find_by_id("a")[1].notes == "overwritten"


def test_list_tasks_filters_and_limits(session_factory) -> None:
    repo = TaskRepository(session_factory)
    repo.insert(_task("a", title="Buy milk", updated_at="2024-01-15T08:00:00+00:00"))
    repo.insert(_task("b", title="Call plumber", notes="about the MILK pipe", updated_at="2024-01-15T10:00:00+00:00"))
    repo.insert(_task("c", title="Milk run", status=TaskStatus.CANCELED))

    found = repo.list_tasks(TaskFilters(search="milk", status=TaskStatus.ACTIVE, limit=10))
    limited = repo.list_tasks(TaskFilters(limit=1))

    assert [task.task_id for task in found] == ["b", "a"]
    assert len(limited) == 1


def test_idempotency_append_is_a_claim(session_factory) -> None:
    repo = IdempotencyRepository(session_factory)
    record = IdempotencyRecord(
        request_id="key-1",
        trace_id="trace",
        created_at="2024-01-15T09:00:00+00:00",
        method="POST",
        path="/tasks",
        request_hash="abc",
        status_code=201,
        response_body='{"ok": true}',
    )

    assert repo.append(record) is True
    assert repo.append(replace(record, status_code=500)) is False
    assert repo.find_by_key("key-1") == record
    assert repo.find_by_key("key-2") is None


def test_migrations_create_both_tables(tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'migrated.db'}"
    config = Config()
    config.set_main_option("script_location", str(ROOT / "migrations"))
    config.set_main_option("sqlalchemy.url", url)

    command.upgrade(config, "head")

    engine = create_engine(url)
    tables = set(inspect(engine).get_table_names())
    engine.dispose()
    assert {"tasks", "idempotency_records"} <= tables
