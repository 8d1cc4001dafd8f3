from __future__ import annotations

from datetime import datetime, timedelta, timezone

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SESSION_COOKIE_NAME = "tl_session"
SESSION_TTL_DAYS = 14


def hash_password(password: str) -> str:
  return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
  return pwd_context.verify(password, password_hash)


def new_session_expires_at() -> datetime:
  return datetime.now(timezone.utc) + timedelta(days=SESSION_TTL_DAYS)
