from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskloom.models import (
  SOURCE_AI,
  SOURCE_USER,
  Comment,
  Project,
  ProjectDetail,
  Subtask,
  SubtaskDetail,
  Task,
  TaskDetail,
)
from taskloom.ownership import EntityRef, OwnedEntity


@dataclass
class ExistingItem:
  id: str
  title: str
  description: str | None
  source: str


@dataclass
class EntityContext:
  title: str
  description: str | None
  comments: list[str] = field(default_factory=list)

  def comments_text(self) -> str:
    return "\n".join(self.comments)


@dataclass
class ProjectGenerationContext:
  project: EntityContext
  user_tasks: list[ExistingItem]
  ai_tasks: list[ExistingItem]
  user_subtasks: list[ExistingItem]
  ai_subtasks: list[ExistingItem]

  @property
  def existing_tasks(self) -> list[ExistingItem]:
    return [*self.user_tasks, *self.ai_tasks]

  @property
  def existing_subtasks(self) -> list[ExistingItem]:
    return [*self.user_subtasks, *self.ai_subtasks]


@dataclass
class TaskGenerationContext:
  project: EntityContext
  task: EntityContext
  user_subtasks: list[ExistingItem]
  ai_subtasks: list[ExistingItem]

  @property
  def existing_subtasks(self) -> list[ExistingItem]:
    return [*self.user_subtasks, *self.ai_subtasks]


async def load_description(db: AsyncSession, ref: EntityRef) -> str | None:
  if ref.kind == "project":
    q = select(ProjectDetail.description).where(ProjectDetail.project_id == ref.id)
  elif ref.kind == "task":
    q = select(TaskDetail.description).where(TaskDetail.task_id == ref.id)
  else:
    q = select(SubtaskDetail.description).where(SubtaskDetail.subtask_id == ref.id)
  res = await db.execute(q)
  return res.scalar_one_or_none()


async def load_comments(db: AsyncSession, ref: EntityRef) -> list[Comment]:
  res = await db.execute(
    select(Comment)
    .where(Comment.entity_type == ref.kind, Comment.entity_id == ref.id)
    .order_by(Comment.created_at.asc(), Comment.id.asc())
  )
  return list(res.scalars().all())


async def load_entity_context(db: AsyncSession, ref: EntityRef, entity: OwnedEntity) -> EntityContext:
  description = await load_description(db, ref)
  comments = await load_comments(db, ref)
  return EntityContext(title=entity.name, description=description, comments=[c.content for c in comments])


async def _tasks_by_source(db: AsyncSession, project_id: str, source: str) -> list[ExistingItem]:
  res = await db.execute(
    select(Task, TaskDetail.description)
    .outerjoin(TaskDetail, TaskDetail.task_id == Task.id)
    .where(Task.project_id == project_id, Task.source_type == source)
    .order_by(Task.created_at.asc(), Task.order_index.asc())
  )
  return [ExistingItem(id=t.id, title=t.name, description=d, source=t.source_type) for t, d in res.all()]


async def _subtasks_by_source(db: AsyncSession, task_ids: list[str], source: str) -> list[ExistingItem]:
  if not task_ids:
    return []
  res = await db.execute(
    select(Subtask, SubtaskDetail.description)
    .outerjoin(SubtaskDetail, SubtaskDetail.subtask_id == Subtask.id)
    .where(Subtask.task_id.in_(task_ids), Subtask.source_type == source)
    .order_by(Subtask.created_at.asc(), Subtask.order_index.asc())
  )
  return [ExistingItem(id=s.id, title=s.name, description=d, source=s.source_type) for s, d in res.all()]


async def load_project_context(db: AsyncSession, project: Project) -> ProjectGenerationContext:
  project_ctx = await load_entity_context(db, EntityRef("project", project.id), project)
  user_tasks = await _tasks_by_source(db, project.id, SOURCE_USER)
  ai_tasks = await _tasks_by_source(db, project.id, SOURCE_AI)
  # One level down, across both partitions, so the prompt sees the whole tree.
  task_ids = [t.id for t in user_tasks + ai_tasks]
  return ProjectGenerationContext(
    project=project_ctx,
    user_tasks=user_tasks,
    ai_tasks=ai_tasks,
    user_subtasks=await _subtasks_by_source(db, task_ids, SOURCE_USER),
    ai_subtasks=await _subtasks_by_source(db, task_ids, SOURCE_AI),
  )


async def load_task_context(db: AsyncSession, task: Task) -> TaskGenerationContext:
  pres = await db.execute(select(Project).where(Project.id == task.project_id))
  project = pres.scalar_one()
  return TaskGenerationContext(
    project=await load_entity_context(db, EntityRef("project", project.id), project),
    task=await load_entity_context(db, EntityRef("task", task.id), task),
    user_subtasks=await _subtasks_by_source(db, [task.id], SOURCE_USER),
    ai_subtasks=await _subtasks_by_source(db, [task.id], SOURCE_AI),
  )
