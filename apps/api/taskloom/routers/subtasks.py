from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskloom.audit import write_audit
from taskloom.deps import get_current_user, get_db
from taskloom.hierarchy import delete_subtasks, descriptions_for, display_order, get_detail, save_description
from taskloom.models import SOURCE_USER, Subtask, User, utcnow
from taskloom.outputs import subtask_out
from taskloom.ownership import EntityRef, get_owned_subtask, get_owned_task
from taskloom.schemas import ItemCreateIn, ItemUpdateIn, SubtaskOut, SubtaskReorderIn

router = APIRouter(tags=["subtasks"])


@router.get("/tasks/{task_id}/subtasks", response_model=list[SubtaskOut])
async def list_subtasks(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[SubtaskOut]:
  await get_owned_task(db, user.id, task_id)
  res = await db.execute(select(Subtask).where(Subtask.task_id == task_id).order_by(*display_order(Subtask)))
  subtasks = list(res.scalars().all())
  descriptions = await descriptions_for(db, "subtask", [s.id for s in subtasks])
  return [subtask_out(s, descriptions.get(s.id)) for s in subtasks]


@router.post("/tasks/{task_id}/subtasks", response_model=SubtaskOut)
async def create_subtask(
  task_id: str,
  payload: ItemCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> SubtaskOut:
  t = await get_owned_task(db, user.id, task_id)
  res = await db.execute(select(func.max(Subtask.order_index)).where(Subtask.task_id == task_id))
  max_order = res.scalar_one()
  s = Subtask(
    task_id=task_id,
    name=payload.name,
    status=payload.status,
    order_index=(max_order + 1) if max_order is not None else 0,
    source_type=SOURCE_USER,
  )
  db.add(s)
  await db.flush()
  if payload.description is not None:
    await save_description(db, EntityRef("subtask", s.id), payload.description)
  await write_audit(
    db,
    event_type="subtask.created",
    entity_type="Subtask",
    entity_id=s.id,
    project_id=t.project_id,
    actor_id=user.id,
    payload={"name": s.name, "taskId": task_id, "orderIndex": s.order_index},
  )
  await db.commit()
  return subtask_out(s, payload.description)


@router.post("/tasks/{task_id}/subtasks/reorder")
async def reorder_subtasks(
  task_id: str,
  payload: SubtaskReorderIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  t = await get_owned_task(db, user.id, task_id)
  res = await db.execute(select(Subtask).where(Subtask.task_id == task_id))
  subtasks = {s.id: s for s in res.scalars().all()}
  if len(payload.subtaskIds) != len(subtasks) or set(payload.subtaskIds) != set(subtasks.keys()):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="subtaskIds must include all subtasks")
  for idx, subtask_id in enumerate(payload.subtaskIds):
    subtasks[subtask_id].order_index = idx
  await write_audit(
    db,
    event_type="subtasks.reordered",
    entity_type="Task",
    entity_id=task_id,
    project_id=t.project_id,
    actor_id=user.id,
    payload={"subtaskIds": payload.subtaskIds},
  )
  await db.commit()
  return {"ok": True}


@router.get("/subtasks/{subtask_id}", response_model=SubtaskOut)
async def get_subtask(subtask_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> SubtaskOut:
  s = await get_owned_subtask(db, user.id, subtask_id)
  detail = await get_detail(db, EntityRef("subtask", s.id))
  return subtask_out(s, detail.description if detail else None)


@router.patch("/subtasks/{subtask_id}", response_model=SubtaskOut)
async def update_subtask(
  subtask_id: str,
  payload: ItemUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> SubtaskOut:
  s = await get_owned_subtask(db, user.id, subtask_id)
  t = await get_owned_task(db, user.id, s.task_id)
  if payload.name is not None:
    s.name = payload.name
  if payload.status is not None:
    s.status = payload.status
  s.updated_at = utcnow()

  await write_audit(
    db,
    event_type="subtask.updated",
    entity_type="Subtask",
    entity_id=s.id,
    project_id=t.project_id,
    actor_id=user.id,
    payload=payload.model_dump(exclude_unset=True),
  )
  await db.commit()
  detail = await get_detail(db, EntityRef("subtask", s.id))
  return subtask_out(s, detail.description if detail else None)


@router.delete("/subtasks/{subtask_id}")
async def delete_subtask(subtask_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  s = await get_owned_subtask(db, user.id, subtask_id)
  t = await get_owned_task(db, user.id, s.task_id)
  name = s.name
  await delete_subtasks(db, [s.id])
  await write_audit(
    db,
    event_type="subtask.deleted",
    entity_type="Subtask",
    entity_id=subtask_id,
    project_id=t.project_id,
    actor_id=user.id,
    payload={"name": name, "taskId": t.id},
  )
  await db.commit()
  return {"ok": True}
