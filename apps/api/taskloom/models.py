from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

PROJECT_STATUSES = ("Active", "Completed", "Archived")
ITEM_STATUSES = ("To-Do", "In Progress", "Done")
SOURCE_USER = "user"
SOURCE_AI = "ai"


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
  # SQLite hands back naive datetimes even for timezone-aware columns.
  if value is None:
    return None
  if value.tzinfo is None:
    return value.replace(tzinfo=timezone.utc)
  return value.astimezone(timezone.utc)


def _uuid() -> str:
  return str(uuid.uuid4())


class Base(DeclarativeBase):
  pass


class User(Base):
  __tablename__ = "users"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  email: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  password_hash: Mapped[str] = mapped_column(String, nullable=False)
  active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Session(Base):
  __tablename__ = "sessions"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  created_ip: Mapped[str | None] = mapped_column(String, nullable=True)
  user_agent: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Project(Base):
  __tablename__ = "projects"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  status: Mapped[str] = mapped_column(String, nullable=False, default="Active")
  due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
  order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Task(Base):
  __tablename__ = "tasks"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  project_id: Mapped[str] = mapped_column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  status: Mapped[str] = mapped_column(String, nullable=False, default="To-Do")
  order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  source_type: Mapped[str] = mapped_column(String, nullable=False, default=SOURCE_USER)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Subtask(Base):
  __tablename__ = "subtasks"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  task_id: Mapped[str] = mapped_column(String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  status: Mapped[str] = mapped_column(String, nullable=False, default="To-Do")
  order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  source_type: Mapped[str] = mapped_column(String, nullable=False, default=SOURCE_USER)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class ProjectDetail(Base):
  __tablename__ = "project_details"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  project_id: Mapped[str] = mapped_column(
    String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
  )
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class TaskDetail(Base):
  __tablename__ = "task_details"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  task_id: Mapped[str] = mapped_column(
    String(36), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
  )
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class SubtaskDetail(Base):
  __tablename__ = "subtask_details"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  subtask_id: Mapped[str] = mapped_column(
    String(36), ForeignKey("subtasks.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
  )
  description: Mapped[str | None] = mapped_column(Text, nullable=True)
  updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Comment(Base):
  __tablename__ = "comments"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  entity_type: Mapped[str] = mapped_column(String, nullable=False)
  entity_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
  content: Mapped[str] = mapped_column(Text, nullable=False)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class AiGeneration(Base):
  __tablename__ = "ai_generations"
  __table_args__ = (
    UniqueConstraint("entity_type", "entity_id", "generation_type", name="ux_ai_generations_entity_type_id_kind"),
  )

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  entity_type: Mapped[str] = mapped_column(String, nullable=False)
  entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
  generation_type: Mapped[str] = mapped_column(String, nullable=False)
  generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class AuditEvent(Base):
  __tablename__ = "audit_events"

  id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
  actor_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
  project_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
  event_type: Mapped[str] = mapped_column(String, nullable=False)
  entity_type: Mapped[str] = mapped_column(String, nullable=False)
  entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
  payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
