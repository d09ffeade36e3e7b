"""create tasks table"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_create_tasks"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("task_id", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("tags", sa.Text(), nullable=False, server_default=""),
        sa.Column("source", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="ACTIVE"),
        sa.Column("priority", sa.Integer(), nullable=True),
        sa.Column("effort_mins", sa.Integer(), nullable=True),
        sa.Column("start_at", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("due_at", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("snoozed_until", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("last_suggested_at", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("context_days", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("context_times", sa.String(length=64), nullable=False, server_default=""),
        sa.Column("created_at", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("updated_at", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("version", sa.Integer(), nullable=True),
    )
    op.create_index("ix_tasks_task_id", "tasks", ["task_id"], unique=True)
    op.create_index("ix_tasks_status", "tasks", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_tasks_status", table_name="tasks")
    op.drop_index("ix_tasks_task_id", table_name="tasks")
    op.drop_table("tasks")
