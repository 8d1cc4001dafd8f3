from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskloom.audit import write_audit
from taskloom.config import settings
from taskloom.deps import client_ip, get_current_user, get_db
from taskloom.models import Session as DbSession, User
from taskloom.rate_limit import limiter
from taskloom.schemas import LoginIn, UserOut
from taskloom.security import SESSION_COOKIE_NAME, SESSION_TTL_DAYS, new_session_expires_at, verify_password

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_out(u: User) -> UserOut:
  return UserOut(id=u.id, email=u.email, name=u.name)


def _rate_limit_or_429(*, key: str, limit: int, window_seconds: int) -> None:
  allowed, retry_after = limiter.hit(key, limit=limit, window_seconds=window_seconds)
  if allowed:
    return
  raise HTTPException(
    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
    detail="Too many requests",
    headers={"Retry-After": str(retry_after)},
  )


@router.post("/login", response_model=UserOut)
async def login(payload: LoginIn, request: Request, response: Response, db: AsyncSession = Depends(get_db)) -> UserOut:
  ip = client_ip(request) or "unknown"
  email = (payload.email or "").strip().lower()
  _rate_limit_or_429(key=f"auth:login:ip:{ip}", limit=int(settings.rate_limit_login_ip_per_minute), window_seconds=60)
  if email:
    _rate_limit_or_429(key=f"auth:login:email:{email}", limit=int(settings.rate_limit_login_email_per_minute), window_seconds=60)

  res = await db.execute(select(User).where(User.email == email))
  u = res.scalar_one_or_none()
  if not u or not verify_password(payload.password, u.password_hash):
    await write_audit(db, event_type="auth.login.failed", entity_type="Auth", entity_id=None, payload={"email": email, "ip": ip})
    await db.commit()
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
  if not u.active:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User disabled")

  s = DbSession(
    user_id=u.id,
    expires_at=new_session_expires_at(),
    created_ip=client_ip(request),
    user_agent=request.headers.get("user-agent"),
  )
  db.add(s)
  await write_audit(db, event_type="auth.login.success", entity_type="User", entity_id=u.id, actor_id=u.id, payload={"ip": ip})
  await db.commit()

  response.set_cookie(
    key=SESSION_COOKIE_NAME,
    value=s.id,
    httponly=True,
    secure=settings.cookie_secure,
    samesite="lax",
    domain=settings.cookie_domain or None,
    max_age=int(SESSION_TTL_DAYS * 86400),
    expires=s.expires_at,
    path="/",
  )
  return _user_out(u)


@router.post("/logout")
async def logout(
  response: Response,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  await db.execute(delete(DbSession).where(DbSession.user_id == user.id))
  await write_audit(db, event_type="auth.logout", entity_type="User", entity_id=user.id, actor_id=user.id)
  await db.commit()
  response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")
  return {"ok": True}


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)) -> UserOut:
  return _user_out(user)
