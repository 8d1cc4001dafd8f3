"""Ownership checks for the project -> task -> subtask hierarchy.

Every entity is owned transitively through ``projects.user_id``. A missing
entity and an entity that belongs to another user produce the same
``NotFoundError`` so callers cannot probe for ids they do not own.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskloom.errors import BadRequestError, NotFoundError
from taskloom.models import Project, Subtask, Task

EntityKind = Literal["project", "task", "subtask"]
ENTITY_KINDS: tuple[str, ...] = ("project", "task", "subtask")

OwnedEntity = Union[Project, Task, Subtask]


@dataclass(frozen=True)
class EntityRef:
  kind: EntityKind
  id: str

  @classmethod
  def parse(cls, kind: str | None, entity_id: str | None) -> "EntityRef":
    if not entity_id or not kind:
      raise BadRequestError("Entity ID and type are required")
    if kind not in ENTITY_KINDS:
      raise BadRequestError("Invalid entity type")
    return cls(kind=kind, id=entity_id)

  @property
  def label(self) -> str:
    return self.kind.capitalize()


async def get_owned_project(db: AsyncSession, user_id: str, project_id: str) -> Project:
  res = await db.execute(select(Project).where(Project.id == project_id, Project.user_id == user_id))
  p = res.scalar_one_or_none()
  if not p:
    raise NotFoundError("Project not found")
  return p


async def get_owned_task(db: AsyncSession, user_id: str, task_id: str, *, source_type: str | None = None) -> Task:
  q = select(Task).join(Project, Project.id == Task.project_id).where(Task.id == task_id, Project.user_id == user_id)
  if source_type is not None:
    q = q.where(Task.source_type == source_type)
  res = await db.execute(q)
  t = res.scalar_one_or_none()
  if not t:
    raise NotFoundError("AI task not found" if source_type == "ai" else "Task not found")
  return t


async def get_owned_subtask(db: AsyncSession, user_id: str, subtask_id: str, *, source_type: str | None = None) -> Subtask:
  q = (
    select(Subtask)
    .join(Task, Task.id == Subtask.task_id)
    .join(Project, Project.id == Task.project_id)
    .where(Subtask.id == subtask_id, Project.user_id == user_id)
  )
  if source_type is not None:
    q = q.where(Subtask.source_type == source_type)
  res = await db.execute(q)
  s = res.scalar_one_or_none()
  if not s:
    raise NotFoundError("AI subtask not found" if source_type == "ai" else "Subtask not found")
  return s


async def verify_ownership(db: AsyncSession, user_id: str, ref: EntityRef) -> OwnedEntity:
  if ref.kind == "project":
    return await get_owned_project(db, user_id, ref.id)
  if ref.kind == "task":
    return await get_owned_task(db, user_id, ref.id)
  return await get_owned_subtask(db, user_id, ref.id)


async def project_id_for(db: AsyncSession, entity: OwnedEntity) -> str:
  if isinstance(entity, Project):
    return entity.id
  if isinstance(entity, Task):
    return entity.project_id
  res = await db.execute(select(Task.project_id).where(Task.id == entity.task_id))
  return res.scalar_one()
