from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskloom.audit import write_audit
from taskloom.deps import get_current_user, get_db
from taskloom.hierarchy import delete_project as cascade_delete_project, save_description
from taskloom.models import Project, User, utcnow
from taskloom.outputs import project_out
from taskloom.ownership import EntityRef, get_owned_project
from taskloom.schemas import ProjectCreateIn, ProjectOut, ProjectReorderIn, ProjectUpdateIn

router = APIRouter(tags=["projects"])


@router.get("/projects", response_model=list[ProjectOut])
async def list_projects(
  include_archived: bool = Query(default=False, alias="includeArchived"),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[ProjectOut]:
  q = select(Project).where(Project.user_id == user.id)
  if not include_archived:
    q = q.where(Project.archived.is_(False))
  res = await db.execute(q.order_by(Project.order_index.asc(), Project.created_at.asc()))
  return [project_out(p) for p in res.scalars().all()]


@router.post("/projects", response_model=ProjectOut)
async def create_project(payload: ProjectCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> ProjectOut:
  res = await db.execute(select(func.max(Project.order_index)).where(Project.user_id == user.id))
  max_order = res.scalar_one()
  p = Project(
    user_id=user.id,
    name=payload.name,
    status=payload.status,
    due_date=payload.dueDate,
    archived=payload.status == "Archived",
    order_index=(max_order + 1) if max_order is not None else 0,
  )
  db.add(p)
  await db.flush()
  if payload.description is not None:
    await save_description(db, EntityRef("project", p.id), payload.description)
  await write_audit(
    db,
    event_type="project.created",
    entity_type="Project",
    entity_id=p.id,
    project_id=p.id,
    actor_id=user.id,
    payload={"name": p.name, "status": p.status},
  )
  await db.commit()
  return project_out(p)


@router.post("/projects/reorder")
async def reorder_projects(payload: ProjectReorderIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  res = await db.execute(select(Project).where(Project.user_id == user.id))
  projects = {p.id: p for p in res.scalars().all()}
  if len(payload.projectIds) != len(projects) or set(payload.projectIds) != set(projects.keys()):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="projectIds must include all projects")
  for idx, project_id in enumerate(payload.projectIds):
    projects[project_id].order_index = idx
  await write_audit(
    db,
    event_type="projects.reordered",
    entity_type="User",
    entity_id=user.id,
    actor_id=user.id,
    payload={"projectIds": payload.projectIds},
  )
  await db.commit()
  return {"ok": True}


@router.get("/projects/{project_id}", response_model=ProjectOut)
async def get_project(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> ProjectOut:
  return project_out(await get_owned_project(db, user.id, project_id))


@router.patch("/projects/{project_id}", response_model=ProjectOut)
async def update_project(
  project_id: str,
  payload: ProjectUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> ProjectOut:
  p = await get_owned_project(db, user.id, project_id)
  changed = payload.model_dump(exclude_unset=True)
  if payload.name is not None:
    p.name = payload.name
  if payload.status is not None:
    p.status = payload.status
  if "dueDate" in changed:
    p.due_date = payload.dueDate
  if payload.archived is not None:
    p.archived = payload.archived
  p.updated_at = utcnow()

  await write_audit(
    db,
    event_type="project.updated",
    entity_type="Project",
    entity_id=p.id,
    project_id=p.id,
    actor_id=user.id,
    payload=changed,
  )
  await db.commit()
  return project_out(p)


@router.delete("/projects/{project_id}")
async def delete_project(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  p = await get_owned_project(db, user.id, project_id)
  name = p.name
  await cascade_delete_project(db, p.id)
  await write_audit(
    db,
    event_type="project.deleted",
    entity_type="Project",
    entity_id=project_id,
    project_id=project_id,
    actor_id=user.id,
    payload={"name": name},
  )
  await db.commit()
  return {"ok": True}
