from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskloom.ai import merge, service
from taskloom.ai.merge import InsertedTask
from taskloom.ai.providers import AIProvider
from taskloom.audit import write_audit
from taskloom.deps import get_ai_provider, get_current_user, get_db
from taskloom.errors import BadRequestError
from taskloom.hierarchy import descriptions_for
from taskloom.models import AiGeneration, User
from taskloom.outputs import marker_out, subtask_out, task_out
from taskloom.ownership import EntityRef, get_owned_project, get_owned_task, verify_ownership
from taskloom.schemas import (
  AcceptAllSubtasksIn,
  AcceptAllSubtasksOut,
  AcceptAllTasksIn,
  AcceptAllTasksOut,
  AcceptSubtaskIn,
  AcceptSubtaskOut,
  AcceptTaskIn,
  AcceptTaskOut,
  EnhanceDescriptionIn,
  EnhanceDescriptionOut,
  GeneratedTaskOut,
  GenerateSubtasksIn,
  GenerateSubtasksOut,
  GenerateTasksIn,
  GenerateTasksOut,
  GenerationMarkerOut,
)

router = APIRouter(prefix="/ai", tags=["ai"])


def _generated_task_out(item: InsertedTask) -> GeneratedTaskOut:
  base = task_out(item.task, item.description)
  return GeneratedTaskOut(
    **base.model_dump(),
    subtasks=[subtask_out(s.subtask, s.description) for s in item.subtasks],
  )


def _require(value: str | None, message: str) -> str:
  if not value:
    raise BadRequestError(message)
  return value


@router.post("/generate-tasks", response_model=GenerateTasksOut)
async def generate_tasks(
  payload: GenerateTasksIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  provider: AIProvider = Depends(get_ai_provider),
) -> GenerateTasksOut:
  project_id = _require(payload.projectId, "Project ID is required")
  refresh = bool(payload.refresh)
  result = await service.generate_tasks_for_project(db, provider, user_id=user.id, project_id=project_id, refresh=refresh)
  return GenerateTasksOut(tasks=[_generated_task_out(i) for i in result.succeeded], appended=not refresh)


@router.post("/generate-subtasks", response_model=GenerateSubtasksOut)
async def generate_subtasks(
  payload: GenerateSubtasksIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  provider: AIProvider = Depends(get_ai_provider),
) -> GenerateSubtasksOut:
  task_id = _require(payload.taskId, "Task ID is required")
  refresh = bool(payload.refresh)
  result = await service.generate_subtasks_for_task(db, provider, user_id=user.id, task_id=task_id, refresh=refresh)
  return GenerateSubtasksOut(
    subtasks=[subtask_out(i.subtask, i.description) for i in result.succeeded],
    appended=not refresh,
  )


@router.post("/accept-task", response_model=AcceptTaskOut)
async def accept_task(payload: AcceptTaskIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> AcceptTaskOut:
  task_id = _require(payload.taskId, "Task ID is required")
  t = await merge.accept_task(db, user.id, task_id)
  await write_audit(
    db,
    event_type="ai.task.accepted",
    entity_type="Task",
    entity_id=t.id,
    project_id=t.project_id,
    actor_id=user.id,
  )
  await db.commit()
  descriptions = await descriptions_for(db, "task", [t.id])
  return AcceptTaskOut(task=task_out(t, descriptions.get(t.id)), message="Task accepted successfully")


@router.post("/accept-subtask", response_model=AcceptSubtaskOut)
async def accept_subtask(
  payload: AcceptSubtaskIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> AcceptSubtaskOut:
  subtask_id = _require(payload.subtaskId, "Subtask ID is required")
  s = await merge.accept_subtask(db, user.id, subtask_id)
  t = await get_owned_task(db, user.id, s.task_id)
  await write_audit(
    db,
    event_type="ai.subtask.accepted",
    entity_type="Subtask",
    entity_id=s.id,
    project_id=t.project_id,
    actor_id=user.id,
  )
  await db.commit()
  descriptions = await descriptions_for(db, "subtask", [s.id])
  return AcceptSubtaskOut(subtask=subtask_out(s, descriptions.get(s.id)), message="Subtask accepted successfully")


@router.post("/accept-all-tasks", response_model=AcceptAllTasksOut)
async def accept_all_tasks(
  payload: AcceptAllTasksIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> AcceptAllTasksOut:
  project_id = _require(payload.projectId, "Project ID is required")
  p = await get_owned_project(db, user.id, project_id)
  rows = await merge.accept_all_tasks(db, p.id)
  if not rows:
    return AcceptAllTasksOut(acceptedCount=0, tasks=[], message="No AI tasks found to accept")

  await write_audit(
    db,
    event_type="ai.tasks.accepted",
    entity_type="Project",
    entity_id=p.id,
    project_id=p.id,
    actor_id=user.id,
    payload={"taskIds": [t.id for t in rows]},
  )
  await db.commit()
  descriptions = await descriptions_for(db, "task", [t.id for t in rows])
  return AcceptAllTasksOut(
    acceptedCount=len(rows),
    tasks=[task_out(t, descriptions.get(t.id)) for t in rows],
    message=f"Successfully accepted {len(rows)} AI task(s)",
  )


@router.post("/accept-all-subtasks", response_model=AcceptAllSubtasksOut)
async def accept_all_subtasks(
  payload: AcceptAllSubtasksIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> AcceptAllSubtasksOut:
  task_id = _require(payload.taskId, "Task ID is required")
  t = await get_owned_task(db, user.id, task_id)
  rows = await merge.accept_all_subtasks(db, t.id)
  if not rows:
    return AcceptAllSubtasksOut(acceptedCount=0, subtasks=[], message="No AI subtasks found to accept")

  await write_audit(
    db,
    event_type="ai.subtasks.accepted",
    entity_type="Task",
    entity_id=t.id,
    project_id=t.project_id,
    actor_id=user.id,
    payload={"subtaskIds": [s.id for s in rows]},
  )
  await db.commit()
  descriptions = await descriptions_for(db, "subtask", [s.id for s in rows])
  return AcceptAllSubtasksOut(
    acceptedCount=len(rows),
    subtasks=[subtask_out(s, descriptions.get(s.id)) for s in rows],
    message=f"Successfully accepted {len(rows)} AI subtask(s)",
  )


@router.post("/enhance-description", response_model=EnhanceDescriptionOut)
async def enhance_description(
  payload: EnhanceDescriptionIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  provider: AIProvider = Depends(get_ai_provider),
) -> EnhanceDescriptionOut:
  ref = EntityRef.parse(payload.entityType, payload.entityId)
  description = await service.enhance_description(db, provider, user_id=user.id, ref=ref)
  return EnhanceDescriptionOut(description=description)


@router.get("/generations/{entity_type}/{entity_id}", response_model=list[GenerationMarkerOut])
async def list_generations(
  entity_type: str,
  entity_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[GenerationMarkerOut]:
  ref = EntityRef.parse(entity_type, entity_id)
  await verify_ownership(db, user.id, ref)
  res = await db.execute(
    select(AiGeneration)
    .where(AiGeneration.entity_type == ref.kind, AiGeneration.entity_id == ref.id)
    .order_by(AiGeneration.generation_type.asc())
  )
  return [marker_out(m) for m in res.scalars().all()]
