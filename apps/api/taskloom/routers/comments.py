from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskloom.ai.context import load_comments
from taskloom.audit import write_audit
from taskloom.deps import get_current_user, get_db
from taskloom.errors import NotFoundError
from taskloom.models import Comment, User
from taskloom.outputs import comment_out
from taskloom.ownership import EntityRef, project_id_for, verify_ownership
from taskloom.schemas import CommentCreateIn, CommentOut

router = APIRouter(prefix="/comments", tags=["comments"])


@router.get("/{entity_type}/{entity_id}", response_model=list[CommentOut])
async def list_comments(
  entity_type: str,
  entity_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[CommentOut]:
  ref = EntityRef.parse(entity_type, entity_id)
  await verify_ownership(db, user.id, ref)
  return [comment_out(c) for c in await load_comments(db, ref)]


@router.post("/{entity_type}/{entity_id}", response_model=CommentOut)
async def create_comment(
  entity_type: str,
  entity_id: str,
  payload: CommentCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> CommentOut:
  ref = EntityRef.parse(entity_type, entity_id)
  entity = await verify_ownership(db, user.id, ref)
  c = Comment(entity_type=ref.kind, entity_id=ref.id, content=payload.content)
  db.add(c)
  await db.flush()
  await write_audit(
    db,
    event_type="comment.created",
    entity_type="Comment",
    entity_id=c.id,
    project_id=await project_id_for(db, entity),
    actor_id=user.id,
    payload={"entityType": ref.kind, "entityId": ref.id},
  )
  await db.commit()
  return comment_out(c)


@router.delete("/{comment_id}")
async def delete_comment(comment_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  res = await db.execute(select(Comment).where(Comment.id == comment_id))
  c = res.scalar_one_or_none()
  if not c:
    raise NotFoundError("Comment not found")
  ref = EntityRef(c.entity_type, c.entity_id)
  try:
    entity = await verify_ownership(db, user.id, ref)
  except NotFoundError:
    raise NotFoundError("Comment not found") from None

  await db.execute(delete(Comment).where(Comment.id == comment_id))
  await write_audit(
    db,
    event_type="comment.deleted",
    entity_type="Comment",
    entity_id=comment_id,
    project_id=await project_id_for(db, entity),
    actor_id=user.id,
    payload={"entityType": ref.kind, "entityId": ref.id},
  )
  await db.commit()
  return {"ok": True}
