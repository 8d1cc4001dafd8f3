from __future__ import annotations

from taskloom.models import AiGeneration, Comment, Project, Subtask, Task, as_utc
from taskloom.schemas import CommentOut, GenerationMarkerOut, ProjectOut, SubtaskOut, TaskOut


def project_out(p: Project) -> ProjectOut:
  return ProjectOut(
    id=p.id,
    name=p.name,
    status=p.status,
    dueDate=as_utc(p.due_date),
    archived=bool(p.archived),
    orderIndex=p.order_index,
    createdAt=as_utc(p.created_at),
    updatedAt=as_utc(p.updated_at),
  )


def task_out(t: Task, description: str | None = None) -> TaskOut:
  return TaskOut(
    id=t.id,
    projectId=t.project_id,
    name=t.name,
    status=t.status,
    orderIndex=t.order_index,
    sourceType=t.source_type,
    description=description,
    createdAt=as_utc(t.created_at),
    updatedAt=as_utc(t.updated_at),
  )


def subtask_out(s: Subtask, description: str | None = None) -> SubtaskOut:
  return SubtaskOut(
    id=s.id,
    taskId=s.task_id,
    name=s.name,
    status=s.status,
    orderIndex=s.order_index,
    sourceType=s.source_type,
    description=description,
    createdAt=as_utc(s.created_at),
    updatedAt=as_utc(s.updated_at),
  )


def comment_out(c: Comment) -> CommentOut:
  return CommentOut(
    id=c.id,
    entityType=c.entity_type,
    entityId=c.entity_id,
    content=c.content,
    createdAt=as_utc(c.created_at),
  )


def marker_out(m: AiGeneration) -> GenerationMarkerOut:
  return GenerationMarkerOut(
    entityType=m.entity_type,
    entityId=m.entity_id,
    generationType=m.generation_type,
    generatedAt=as_utc(m.generated_at),
  )
