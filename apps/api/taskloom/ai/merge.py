"""Persisting generated items and converting them into user-owned items.

A generation run either appends after the current highest ``order_index`` of
the target collection or, when ``refresh`` is set, first deletes every
AI-sourced row of that collection. Rows are inserted one item at a time in
their own savepoint so a failing item does not abort the rest of the batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskloom.hierarchy import delete_subtasks, delete_tasks
from taskloom.models import SOURCE_AI, SOURCE_USER, AiGeneration, Subtask, SubtaskDetail, Task, TaskDetail, utcnow
from taskloom.ownership import get_owned_subtask, get_owned_task
from taskloom.schemas import GeneratedSubtaskItem, GeneratedTaskItem

logger = logging.getLogger(__name__)

InputT = TypeVar("InputT")
RowT = TypeVar("RowT")


@dataclass
class FailedItem(Generic[InputT]):
  input: InputT
  reason: str


@dataclass
class InsertedSubtask:
  subtask: Subtask
  description: str


@dataclass
class InsertedTask:
  task: Task
  description: str
  subtasks: list[InsertedSubtask] = field(default_factory=list)
  failed_subtasks: list[FailedItem[GeneratedSubtaskItem]] = field(default_factory=list)


@dataclass
class MergeResult(Generic[InputT, RowT]):
  succeeded: list[RowT] = field(default_factory=list)
  failed: list[FailedItem[InputT]] = field(default_factory=list)


async def generation_lock(db: AsyncSession, *, entity_type: str, entity_id: str, generation_type: str) -> None:
  """Serialize delete/insert runs for one (entity, generation type) pair.

  Uses a transaction-scoped advisory lock on PostgreSQL, released on
  commit/rollback. Other dialects run unserialized.
  """
  if db.get_bind().dialect.name != "postgresql":
    return
  key = f"ai_generation:{entity_type}:{entity_id}:{generation_type}"
  await db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": key})


async def delete_ai_tasks(db: AsyncSession, project_id: str) -> int:
  res = await db.execute(select(Task.id).where(Task.project_id == project_id, Task.source_type == SOURCE_AI))
  task_ids = list(res.scalars().all())
  await delete_tasks(db, task_ids)
  return len(task_ids)


async def delete_ai_subtasks(db: AsyncSession, task_id: str) -> int:
  res = await db.execute(select(Subtask.id).where(Subtask.task_id == task_id, Subtask.source_type == SOURCE_AI))
  subtask_ids = list(res.scalars().all())
  await delete_subtasks(db, subtask_ids)
  return len(subtask_ids)


async def next_task_order_index(db: AsyncSession, project_id: str) -> int:
  res = await db.execute(select(func.max(Task.order_index)).where(Task.project_id == project_id))
  max_order = res.scalar_one()
  return (max_order + 1) if max_order is not None else 1


async def next_subtask_order_index(db: AsyncSession, task_id: str) -> int:
  res = await db.execute(select(func.max(Subtask.order_index)).where(Subtask.task_id == task_id))
  max_order = res.scalar_one()
  return (max_order + 1) if max_order is not None else 1


async def _insert_subtask_row(db: AsyncSession, *, task_id: str, item: GeneratedSubtaskItem, order_index: int) -> Subtask:
  s = Subtask(task_id=task_id, name=item.title, order_index=order_index, source_type=SOURCE_AI, status="To-Do")
  db.add(s)
  await db.flush()
  db.add(SubtaskDetail(subtask_id=s.id, description=item.description))
  await db.flush()
  return s


async def _insert_task_row(db: AsyncSession, *, project_id: str, item: GeneratedTaskItem, order_index: int) -> Task:
  t = Task(project_id=project_id, name=item.title, order_index=order_index, source_type=SOURCE_AI, status="To-Do")
  db.add(t)
  await db.flush()
  db.add(TaskDetail(task_id=t.id, description=item.description))
  await db.flush()
  return t


async def _insert_subtasks(
  db: AsyncSession, *, task_id: str, items: list[GeneratedSubtaskItem], base: int
) -> MergeResult[GeneratedSubtaskItem, InsertedSubtask]:
  result: MergeResult[GeneratedSubtaskItem, InsertedSubtask] = MergeResult()
  order_index = base
  for item in items:
    try:
      async with db.begin_nested():
        s = await _insert_subtask_row(db, task_id=task_id, item=item, order_index=order_index)
    except SQLAlchemyError as exc:
      logger.warning("Failed to insert generated subtask %r: %s", item.title, exc)
      result.failed.append(FailedItem(input=item, reason=str(exc)))
      continue
    order_index += 1
    result.succeeded.append(InsertedSubtask(subtask=s, description=item.description))
  return result


async def persist_generated_tasks(
  db: AsyncSession, *, project_id: str, items: list[GeneratedTaskItem], refresh: bool
) -> MergeResult[GeneratedTaskItem, InsertedTask]:
  await generation_lock(db, entity_type="project", entity_id=project_id, generation_type="tasks")
  if refresh:
    removed = await delete_ai_tasks(db, project_id)
    logger.info("Refresh removed %d AI task(s) from project %s", removed, project_id)

  result: MergeResult[GeneratedTaskItem, InsertedTask] = MergeResult()
  order_index = await next_task_order_index(db, project_id)
  for item in items:
    try:
      async with db.begin_nested():
        t = await _insert_task_row(db, project_id=project_id, item=item, order_index=order_index)
    except SQLAlchemyError as exc:
      logger.warning("Failed to insert generated task %r: %s", item.title, exc)
      result.failed.append(FailedItem(input=item, reason=str(exc)))
      continue
    order_index += 1
    # Sub-items of a brand new task are numbered from 1 within that task.
    sub = await _insert_subtasks(db, task_id=t.id, items=item.subtasks, base=1)
    result.succeeded.append(
      InsertedTask(task=t, description=item.description, subtasks=sub.succeeded, failed_subtasks=sub.failed)
    )
  return result


async def persist_generated_subtasks(
  db: AsyncSession, *, task_id: str, items: list[GeneratedSubtaskItem], refresh: bool
) -> MergeResult[GeneratedSubtaskItem, InsertedSubtask]:
  await generation_lock(db, entity_type="task", entity_id=task_id, generation_type="subtasks")
  if refresh:
    removed = await delete_ai_subtasks(db, task_id)
    logger.info("Refresh removed %d AI subtask(s) from task %s", removed, task_id)
  base = await next_subtask_order_index(db, task_id)
  return await _insert_subtasks(db, task_id=task_id, items=items, base=base)


async def upsert_generation_marker(db: AsyncSession, *, entity_type: str, entity_id: str, generation_type: str) -> AiGeneration:
  res = await db.execute(
    select(AiGeneration).where(
      AiGeneration.entity_type == entity_type,
      AiGeneration.entity_id == entity_id,
      AiGeneration.generation_type == generation_type,
    )
  )
  marker = res.scalar_one_or_none()
  if marker is None:
    marker = AiGeneration(entity_type=entity_type, entity_id=entity_id, generation_type=generation_type)
    db.add(marker)
  marker.generated_at = utcnow()
  await db.flush()
  return marker


def mark_accepted(row: RowT) -> RowT:
  row.source_type = SOURCE_USER
  row.updated_at = utcnow()
  return row


async def accept_all_tasks(db: AsyncSession, project_id: str) -> list[Task]:
  res = await db.execute(
    select(Task).where(Task.project_id == project_id, Task.source_type == SOURCE_AI).order_by(Task.order_index.asc())
  )
  rows = list(res.scalars().all())
  for t in rows:
    mark_accepted(t)
  await db.flush()
  return rows


async def accept_all_subtasks(db: AsyncSession, task_id: str) -> list[Subtask]:
  res = await db.execute(
    select(Subtask).where(Subtask.task_id == task_id, Subtask.source_type == SOURCE_AI).order_by(Subtask.order_index.asc())
  )
  rows = list(res.scalars().all())
  for s in rows:
    mark_accepted(s)
  await db.flush()
  return rows


async def accept_task(db: AsyncSession, user_id: str, task_id: str) -> Task:
  t = await get_owned_task(db, user_id, task_id, source_type=SOURCE_AI)
  mark_accepted(t)
  await db.flush()
  return t


async def accept_subtask(db: AsyncSession, user_id: str, subtask_id: str) -> Subtask:
  s = await get_owned_subtask(db, user_id, subtask_id, source_type=SOURCE_AI)
  mark_accepted(s)
  await db.flush()
  return s
