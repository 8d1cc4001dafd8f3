from __future__ import annotations

from sqlalchemy import case, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskloom.models import (
  SOURCE_USER,
  AiGeneration,
  Comment,
  Project,
  ProjectDetail,
  Subtask,
  SubtaskDetail,
  Task,
  TaskDetail,
  utcnow,
)
from taskloom.ownership import EntityRef

_DETAIL_MODELS = {
  "project": (ProjectDetail, ProjectDetail.project_id),
  "task": (TaskDetail, TaskDetail.task_id),
  "subtask": (SubtaskDetail, SubtaskDetail.subtask_id),
}


def display_order(model):
  # User items first, then AI items, each by order_index.
  return (case((model.source_type == SOURCE_USER, 0), else_=1), model.order_index.asc(), model.created_at.asc())


async def get_detail(db: AsyncSession, ref: EntityRef) -> ProjectDetail | TaskDetail | SubtaskDetail | None:
  model, fk = _DETAIL_MODELS[ref.kind]
  res = await db.execute(select(model).where(fk == ref.id))
  return res.scalar_one_or_none()


async def save_description(db: AsyncSession, ref: EntityRef, description: str | None) -> ProjectDetail | TaskDetail | SubtaskDetail:
  # Details are created lazily on the first save.
  detail = await get_detail(db, ref)
  if detail is None:
    model, fk = _DETAIL_MODELS[ref.kind]
    detail = model(**{fk.key: ref.id}, description=description)
    db.add(detail)
  else:
    detail.description = description
    detail.updated_at = utcnow()
  await db.flush()
  return detail


async def descriptions_for(db: AsyncSession, kind: str, ids: list[str]) -> dict[str, str | None]:
  if not ids:
    return {}
  model, fk = _DETAIL_MODELS[kind]
  res = await db.execute(select(fk, model.description).where(fk.in_(ids)))
  return {row[0]: row[1] for row in res.all()}


async def delete_subtasks(db: AsyncSession, subtask_ids: list[str]) -> None:
  if not subtask_ids:
    return
  await db.execute(delete(SubtaskDetail).where(SubtaskDetail.subtask_id.in_(subtask_ids)))
  await db.execute(delete(Comment).where(Comment.entity_type == "subtask", Comment.entity_id.in_(subtask_ids)))
  await db.execute(delete(Subtask).where(Subtask.id.in_(subtask_ids)))


async def delete_tasks(db: AsyncSession, task_ids: list[str]) -> None:
  if not task_ids:
    return
  sres = await db.execute(select(Subtask.id).where(Subtask.task_id.in_(task_ids)))
  await delete_subtasks(db, list(sres.scalars().all()))
  await db.execute(delete(TaskDetail).where(TaskDetail.task_id.in_(task_ids)))
  await db.execute(delete(Comment).where(Comment.entity_type == "task", Comment.entity_id.in_(task_ids)))
  await db.execute(delete(AiGeneration).where(AiGeneration.entity_type == "task", AiGeneration.entity_id.in_(task_ids)))
  await db.execute(delete(Task).where(Task.id.in_(task_ids)))


async def delete_project(db: AsyncSession, project_id: str) -> None:
  tres = await db.execute(select(Task.id).where(Task.project_id == project_id))
  await delete_tasks(db, list(tres.scalars().all()))
  await db.execute(delete(ProjectDetail).where(ProjectDetail.project_id == project_id))
  await db.execute(delete(Comment).where(Comment.entity_type == "project", Comment.entity_id == project_id))
  await db.execute(delete(AiGeneration).where(AiGeneration.entity_type == "project", AiGeneration.entity_id == project_id))
  await db.execute(delete(Project).where(Project.id == project_id))
