from __future__ import annotations

from datetime import datetime, timezone

from fastapi import Cookie, Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskloom.ai.providers import AIProvider, build_ai_provider
from taskloom.config import settings
from taskloom.db import SessionLocal
from taskloom.errors import AuthenticationError
from taskloom.models import Session as DbSession, User, as_utc
from taskloom.security import SESSION_COOKIE_NAME


async def get_db() -> AsyncSession:
  async with SessionLocal() as session:
    yield session


def get_ai_provider() -> AIProvider:
  return build_ai_provider(settings)


def _bearer_session_id(request: Request) -> str | None:
  auth = request.headers.get("authorization")
  if auth and auth.lower().startswith("bearer "):
    token = auth.split(" ", 1)[1].strip()
    return token or None
  return None


async def get_current_user(
  request: Request,
  db: AsyncSession = Depends(get_db),
  session_id: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
) -> User:
  sid = session_id or _bearer_session_id(request)
  if not sid:
    raise AuthenticationError("Unauthorized")

  res = await db.execute(select(DbSession).where(DbSession.id == sid))
  s = res.scalar_one_or_none()
  if not s:
    raise AuthenticationError("Unauthorized")
  if as_utc(s.expires_at) < datetime.now(timezone.utc):
    raise AuthenticationError("Session expired")

  ures = await db.execute(select(User).where(User.id == s.user_id))
  u = ures.scalar_one_or_none()
  if not u or not u.active:
    raise AuthenticationError("Unauthorized")
  return u


def client_ip(request: Request) -> str | None:
  return request.client.host if request.client else None
