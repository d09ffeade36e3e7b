from __future__ import annotations

from sqlalchemy import Column, Integer, String, Text

from .db import Base


class TaskModel(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True)
    task_id = Column(String(64), nullable=False, unique=True, index=True)
    title = Column(String(200), nullable=False)
    notes = Column(Text, nullable=False, default="")
    tags = Column(Text, nullable=False, default="")
    source = Column(String(200), nullable=False, default="")
    status = Column(String(20), nullable=False, default="ACTIVE", index=True)
    priority = Column(Integer, nullable=True)
    effort_mins = Column(Integer, nullable=True)
    start_at = Column(String(40), nullable=False, default="")
    due_at = Column(String(40), nullable=False, default="")
    snoozed_until = Column(String(40), nullable=False, default="")
    last_suggested_at = Column(String(40), nullable=False, default="")
    context_days = Column(String(64), nullable=False, default="")
    context_times = Column(String(64), nullable=False, default="")
    created_at = Column(String(40), nullable=False, default="")
    updated_at = Column(String(40), nullable=False, default="")
    version = Column(Integer, nullable=True)


class IdempotencyModel(Base):
    __tablename__ = "idempotency_records"

    request_id = Column(String(200), primary_key=True)
    trace_id = Column(String(64), nullable=False)
    created_at = Column(String(40), nullable=False)
    method = Column(String(10), nullable=False)
    path = Column(Text, nullable=False)
    request_hash = Column(String(64), nullable=False)
    status_code = Column(Integer, nullable=False)
    response_body = Column(Text, nullable=False)
