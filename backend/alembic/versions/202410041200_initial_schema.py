"""Initial scheduler schema: tasks and chunks."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "202410041200"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tasks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("estimate_min", sa.Integer(), nullable=False),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "tags",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("depends_on", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "chunk_status",
            sa.String(length=20),
            nullable=False,
            server_default=sa.text("'unchunked'"),
        ),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.ForeignKeyConstraint(["depends_on"], ["tasks.id"], ondelete="SET NULL"),
        sa.CheckConstraint("estimate_min > 0", name="ck_tasks_estimate_positive"),
    )
    op.create_index("ix_tasks_chunk_status", "tasks", ["chunk_status"], unique=False)
    op.create_index("ix_tasks_depends_on", "tasks", ["depends_on"], unique=False)

    op.create_table(
        "chunks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("task_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("duration_min", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "tags",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("calendar_event_id", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_chunks_task_id", "chunks", ["task_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_chunks_task_id", table_name="chunks")
    op.drop_table("chunks")
    op.drop_index("ix_tasks_depends_on", table_name="tasks")
    op.drop_index("ix_tasks_chunk_status", table_name="tasks")
    op.drop_table("tasks")
