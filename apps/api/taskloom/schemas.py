from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator

EntityType = Literal["project", "task", "subtask"]
ProjectStatus = Literal["Active", "Completed", "Archived"]
ItemStatus = Literal["To-Do", "In Progress", "Done"]
SourceType = Literal["user", "ai"]


def _parse_dt_utc(value: object) -> object:
  if value is None:
    return None
  if isinstance(value, datetime):
    dt = value
  elif isinstance(value, str):
    s = value.strip()
    if not s:
      return None
    dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
  else:
    return value

  if dt.tzinfo is None:
    return dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc)


# Auth


class LoginIn(BaseModel):
  email: str = Field(min_length=3, max_length=320)
  password: str = Field(min_length=1, max_length=256)


class UserOut(BaseModel):
  id: str
  email: str
  name: str


# Projects


class ProjectOut(BaseModel):
  id: str
  name: str
  status: ProjectStatus
  dueDate: datetime | None = None
  archived: bool = False
  orderIndex: int
  createdAt: datetime
  updatedAt: datetime


class ProjectCreateIn(BaseModel):
  name: str = Field(min_length=1, max_length=200)
  status: ProjectStatus = "Active"
  dueDate: datetime | None = None
  description: str | None = None

  @field_validator("dueDate", mode="before")
  @classmethod
  def _due_date_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class ProjectUpdateIn(BaseModel):
  name: str | None = Field(default=None, min_length=1, max_length=200)
  status: ProjectStatus | None = None
  dueDate: datetime | None = None
  archived: bool | None = None

  @field_validator("dueDate", mode="before")
  @classmethod
  def _due_date_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class ProjectReorderIn(BaseModel):
  projectIds: list[str]


# Tasks and subtasks


class SubtaskOut(BaseModel):
  id: str
  taskId: str
  name: str
  status: ItemStatus
  orderIndex: int
  sourceType: SourceType
  description: str | None = None
  createdAt: datetime
  updatedAt: datetime


class TaskOut(BaseModel):
  id: str
  projectId: str
  name: str
  status: ItemStatus
  orderIndex: int
  sourceType: SourceType
  description: str | None = None
  createdAt: datetime
  updatedAt: datetime


class GeneratedTaskOut(TaskOut):
  subtasks: list[SubtaskOut] = Field(default_factory=list)


class ItemCreateIn(BaseModel):
  name: str = Field(min_length=1, max_length=200)
  status: ItemStatus = "To-Do"
  description: str | None = None


class ItemUpdateIn(BaseModel):
  name: str | None = Field(default=None, min_length=1, max_length=200)
  status: ItemStatus | None = None


class TaskReorderIn(BaseModel):
  taskIds: list[str]


class SubtaskReorderIn(BaseModel):
  subtaskIds: list[str]


# Details and comments


class DetailOut(BaseModel):
  entityType: EntityType
  entityId: str
  description: str | None = None
  updatedAt: datetime | None = None


class DetailUpdateIn(BaseModel):
  description: str | None = Field(default=None, max_length=20000)


class CommentOut(BaseModel):
  id: str
  entityType: EntityType
  entityId: str
  content: str
  createdAt: datetime


class CommentCreateIn(BaseModel):
  content: str = Field(min_length=1, max_length=10000)


# AI


class GenerateTasksIn(BaseModel):
  projectId: str | None = None
  refresh: bool | None = None


class GenerateTasksOut(BaseModel):
  tasks: list[GeneratedTaskOut]
  appended: bool


class GenerateSubtasksIn(BaseModel):
  taskId: str | None = None
  refresh: bool | None = None


class GenerateSubtasksOut(BaseModel):
  subtasks: list[SubtaskOut]
  appended: bool


class AcceptTaskIn(BaseModel):
  taskId: str | None = None


class AcceptTaskOut(BaseModel):
  task: TaskOut
  message: str


class AcceptSubtaskIn(BaseModel):
  subtaskId: str | None = None


class AcceptSubtaskOut(BaseModel):
  subtask: SubtaskOut
  message: str


class AcceptAllTasksIn(BaseModel):
  projectId: str | None = None


class AcceptAllTasksOut(BaseModel):
  acceptedCount: int
  tasks: list[TaskOut] = Field(default_factory=list)
  message: str


class AcceptAllSubtasksIn(BaseModel):
  taskId: str | None = None


class AcceptAllSubtasksOut(BaseModel):
  acceptedCount: int
  subtasks: list[SubtaskOut] = Field(default_factory=list)
  message: str


class EnhanceDescriptionIn(BaseModel):
  entityId: str | None = None
  entityType: str | None = None


class EnhanceDescriptionOut(BaseModel):
  description: str


class GenerationMarkerOut(BaseModel):
  entityType: Literal["project", "task"]
  entityId: str
  generationType: Literal["tasks", "subtasks"]
  generatedAt: datetime


# Model output


class GeneratedSubtaskItem(BaseModel):
  title: str = Field(min_length=1, max_length=100)
  description: str = Field(min_length=1, max_length=300)


class GeneratedTaskItem(BaseModel):
  title: str = Field(min_length=1, max_length=100)
  description: str = Field(min_length=1, max_length=500)
  subtasks: list[GeneratedSubtaskItem] = Field(default_factory=list, max_length=5)
