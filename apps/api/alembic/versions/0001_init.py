"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
  return [
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
  ]


def upgrade() -> None:
  op.create_table(
    "users",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("password_hash", sa.String(), nullable=False),
    sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    *_timestamps(),
  )
  op.create_index("ix_users_email", "users", ["email"], unique=True)

  op.create_table(
    "sessions",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("created_ip", sa.String(), nullable=True),
    sa.Column("user_agent", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_sessions_user_id", "sessions", ["user_id"], unique=False)

  op.create_table(
    "projects",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("status", sa.String(), nullable=False, server_default="Active"),
    sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
    sa.Column("archived", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
    *_timestamps(),
  )
  op.create_index("ix_projects_user_id", "projects", ["user_id"], unique=False)

  op.create_table(
    "tasks",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("project_id", sa.String(36), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("status", sa.String(), nullable=False, server_default="To-Do"),
    sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("source_type", sa.String(), nullable=False, server_default="user"),
    *_timestamps(),
  )
  op.create_index("ix_tasks_project_id", "tasks", ["project_id"], unique=False)
  op.create_index("ix_tasks_project_source_order", "tasks", ["project_id", "source_type", "order_index"], unique=False)

  op.create_table(
    "subtasks",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("task_id", sa.String(36), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("status", sa.String(), nullable=False, server_default="To-Do"),
    sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("source_type", sa.String(), nullable=False, server_default="user"),
    *_timestamps(),
  )
  op.create_index("ix_subtasks_task_id", "subtasks", ["task_id"], unique=False)
  op.create_index("ix_subtasks_task_source_order", "subtasks", ["task_id", "source_type", "order_index"], unique=False)

  for table, fk, parent in (
    ("project_details", "project_id", "projects"),
    ("task_details", "task_id", "tasks"),
    ("subtask_details", "subtask_id", "subtasks"),
  ):
    op.create_table(
      table,
      sa.Column("id", sa.String(36), primary_key=True),
      sa.Column(fk, sa.String(36), sa.ForeignKey(f"{parent}.id", ondelete="CASCADE"), nullable=False),
      sa.Column("description", sa.Text(), nullable=True),
      sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(f"ix_{table}_{fk}", table, [fk], unique=True)

  op.create_table(
    "comments",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("entity_type", sa.String(), nullable=False),
    sa.Column("entity_id", sa.String(36), nullable=False),
    sa.Column("content", sa.Text(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_comments_entity_id", "comments", ["entity_id"], unique=False)

  op.create_table(
    "ai_generations",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("entity_type", sa.String(), nullable=False),
    sa.Column("entity_id", sa.String(36), nullable=False),
    sa.Column("generation_type", sa.String(), nullable=False),
    sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False),
    sa.UniqueConstraint("entity_type", "entity_id", "generation_type", name="ux_ai_generations_entity_type_id_kind"),
  )

  op.create_table(
    "audit_events",
    sa.Column("id", sa.String(36), primary_key=True),
    sa.Column("actor_id", sa.String(36), sa.ForeignKey("users.id"), nullable=True),
    sa.Column("project_id", sa.String(36), nullable=True),
    sa.Column("event_type", sa.String(), nullable=False),
    sa.Column("entity_type", sa.String(), nullable=False),
    sa.Column("entity_id", sa.String(), nullable=True),
    sa.Column("payload", sa.JSON(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
  )
  op.create_index("ix_audit_events_project_id", "audit_events", ["project_id"], unique=False)


def downgrade() -> None:
  for table in (
    "audit_events",
    "ai_generations",
    "comments",
    "subtask_details",
    "task_details",
    "project_details",
    "subtasks",
    "tasks",
    "projects",
    "sessions",
    "users",
  ):
    op.drop_table(table)
