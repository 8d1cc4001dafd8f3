from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskloom.audit import write_audit
from taskloom.deps import get_current_user, get_db
from taskloom.hierarchy import delete_tasks, descriptions_for, display_order, get_detail, save_description
from taskloom.models import SOURCE_USER, Task, User, utcnow
from taskloom.outputs import task_out
from taskloom.ownership import EntityRef, get_owned_project, get_owned_task
from taskloom.schemas import ItemCreateIn, ItemUpdateIn, TaskOut, TaskReorderIn

router = APIRouter(tags=["tasks"])


@router.get("/projects/{project_id}/tasks", response_model=list[TaskOut])
async def list_tasks(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[TaskOut]:
  await get_owned_project(db, user.id, project_id)
  res = await db.execute(select(Task).where(Task.project_id == project_id).order_by(*display_order(Task)))
  tasks = list(res.scalars().all())
  descriptions = await descriptions_for(db, "task", [t.id for t in tasks])
  return [task_out(t, descriptions.get(t.id)) for t in tasks]


@router.post("/projects/{project_id}/tasks", response_model=TaskOut)
async def create_task(
  project_id: str,
  payload: ItemCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> TaskOut:
  await get_owned_project(db, user.id, project_id)
  res = await db.execute(select(func.max(Task.order_index)).where(Task.project_id == project_id))
  max_order = res.scalar_one()
  t = Task(
    project_id=project_id,
    name=payload.name,
    status=payload.status,
    order_index=(max_order + 1) if max_order is not None else 0,
    source_type=SOURCE_USER,
  )
  db.add(t)
  await db.flush()
  if payload.description is not None:
    await save_description(db, EntityRef("task", t.id), payload.description)
  await write_audit(
    db,
    event_type="task.created",
    entity_type="Task",
    entity_id=t.id,
    project_id=project_id,
    actor_id=user.id,
    payload={"name": t.name, "orderIndex": t.order_index},
  )
  await db.commit()
  return task_out(t, payload.description)


@router.post("/projects/{project_id}/tasks/reorder")
async def reorder_tasks(
  project_id: str,
  payload: TaskReorderIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  await get_owned_project(db, user.id, project_id)
  res = await db.execute(select(Task).where(Task.project_id == project_id))
  tasks = {t.id: t for t in res.scalars().all()}
  if len(payload.taskIds) != len(tasks) or set(payload.taskIds) != set(tasks.keys()):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="taskIds must include all tasks")
  for idx, task_id in enumerate(payload.taskIds):
    tasks[task_id].order_index = idx
  await write_audit(
    db,
    event_type="tasks.reordered",
    entity_type="Project",
    entity_id=project_id,
    project_id=project_id,
    actor_id=user.id,
    payload={"taskIds": payload.taskIds},
  )
  await db.commit()
  return {"ok": True}


@router.get("/tasks/{task_id}", response_model=TaskOut)
async def get_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskOut:
  t = await get_owned_task(db, user.id, task_id)
  detail = await get_detail(db, EntityRef("task", t.id))
  return task_out(t, detail.description if detail else None)


@router.patch("/tasks/{task_id}", response_model=TaskOut)
async def update_task(task_id: str, payload: ItemUpdateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskOut:
  t = await get_owned_task(db, user.id, task_id)
  if payload.name is not None:
    t.name = payload.name
  if payload.status is not None:
    t.status = payload.status
  t.updated_at = utcnow()

  await write_audit(
    db,
    event_type="task.updated",
    entity_type="Task",
    entity_id=t.id,
    project_id=t.project_id,
    actor_id=user.id,
    payload=payload.model_dump(exclude_unset=True),
  )
  await db.commit()
  detail = await get_detail(db, EntityRef("task", t.id))
  return task_out(t, detail.description if detail else None)


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  t = await get_owned_task(db, user.id, task_id)
  project_id, name = t.project_id, t.name
  await delete_tasks(db, [t.id])
  await write_audit(
    db,
    event_type="task.deleted",
    entity_type="Task",
    entity_id=task_id,
    project_id=project_id,
    actor_id=user.id,
    payload={"name": name},
  )
  await db.commit()
  return {"ok": True}
