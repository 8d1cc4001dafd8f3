from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taskloom.audit import write_audit
from taskloom.deps import get_current_user, get_db
from taskloom.hierarchy import get_detail, save_description
from taskloom.models import User, as_utc
from taskloom.ownership import EntityRef, project_id_for, verify_ownership
from taskloom.schemas import DetailOut, DetailUpdateIn

router = APIRouter(prefix="/details", tags=["details"])


@router.get("/{entity_type}/{entity_id}", response_model=DetailOut)
async def get_entity_detail(
  entity_type: str,
  entity_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> DetailOut:
  ref = EntityRef.parse(entity_type, entity_id)
  await verify_ownership(db, user.id, ref)
  detail = await get_detail(db, ref)
  if detail is None:
    return DetailOut(entityType=ref.kind, entityId=ref.id)
  return DetailOut(entityType=ref.kind, entityId=ref.id, description=detail.description, updatedAt=as_utc(detail.updated_at))


@router.put("/{entity_type}/{entity_id}", response_model=DetailOut)
async def put_entity_detail(
  entity_type: str,
  entity_id: str,
  payload: DetailUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> DetailOut:
  ref = EntityRef.parse(entity_type, entity_id)
  entity = await verify_ownership(db, user.id, ref)
  detail = await save_description(db, ref, payload.description)
  await write_audit(
    db,
    event_type="detail.updated",
    entity_type=ref.label,
    entity_id=ref.id,
    project_id=await project_id_for(db, entity),
    actor_id=user.id,
    payload={"length": len(payload.description or "")},
  )
  await db.commit()
  return DetailOut(entityType=ref.kind, entityId=ref.id, description=detail.description, updatedAt=as_utc(detail.updated_at))
