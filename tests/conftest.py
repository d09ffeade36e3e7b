from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from nexttask.infra.db import create_schema, create_session_factory, get_engine

# Monday, inside the default MORNING bucket
MONDAY_9AM = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = MONDAY_9AM) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> None:
        self.current = self.current + timedelta(**delta)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def session_factory(tmp_path):
    engine = get_engine(f"sqlite:///{tmp_path / 'tasks.db'}")
    create_schema(engine)
    yield create_session_factory(engine)
    engine.dispose()
