from __future__ import annotations

import json
import os
import sys
import tempfile
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

_TEST_DB = Path(tempfile.gettempdir()) / "taskloom_test.db"
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DB}")
os.environ.setdefault("AI_PROVIDER", "local")

from taskloom.config import settings
from taskloom.db import SessionLocal, engine
from taskloom.deps import get_ai_provider
from taskloom.main import app
from taskloom.models import Base, User
from taskloom.rate_limit import limiter
from taskloom.security import SESSION_COOKIE_NAME, hash_password

USERS = {
  "demo@taskloom.local": ("Demo", "demo1234"),
  "other@taskloom.local": ("Other", "other1234"),
}
_PASSWORD_HASHES = {email: hash_password(pw) for email, (_, pw) in USERS.items()}


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


class FakeProvider:
  """Scripted provider: returns queued responses in order and records every call."""

  def __init__(self, *responses: str | Exception) -> None:
    self.responses = list(responses)
    self.calls: list[dict] = []

  async def generate(self, *, prompt: str, context: dict) -> str:
    self.calls.append({"prompt": prompt, "context": context})
    if not self.responses:
      raise AssertionError("FakeProvider has no scripted response left")
    r = self.responses.pop(0)
    if isinstance(r, Exception):
      raise r
    return r


def use_provider(provider) -> None:
  app.dependency_overrides[get_ai_provider] = lambda: provider


async def _reset_db() -> None:
  limiter.reset_prefix("auth:")
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
    await conn.run_sync(Base.metadata.create_all)
  async with SessionLocal() as db:
    for email, (name, _) in USERS.items():
      db.add(User(email=email, name=name, password_hash=_PASSWORD_HASHES[email]))
    await db.commit()
  await engine.dispose()


@pytest.fixture
async def clean_db() -> None:
  if not settings.is_test_database():
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. taskloom_test)."
    )
  await _reset_db()
  yield
  app.dependency_overrides.clear()
  await engine.dispose()


@pytest.fixture
async def client(clean_db) -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


async def login(client: AsyncClient, email: str = "demo@taskloom.local", password: str | None = None) -> dict:
  if password is None:
    password = USERS[email][1]
  res = await client.post("/auth/login", json={"email": email, "password": password})
  assert res.status_code == 200, res.text
  cookie = res.headers.get("set-cookie") or ""
  assert f"{SESSION_COOKIE_NAME}=" in cookie
  sid = cookie.split(f"{SESSION_COOKIE_NAME}=", 1)[1].split(";", 1)[0]
  # Send the session explicitly so the client does not depend on cookie domain matching.
  client.cookies.clear()
  client.headers["Authorization"] = f"Bearer {sid}"
  return res.json()


async def create_project(client: AsyncClient, name: str = "Website Relaunch", **extra) -> dict:
  res = await client.post("/projects", json={"name": name, **extra})
  assert res.status_code == 200, res.text
  return res.json()


async def create_task(client: AsyncClient, project_id: str, name: str, **extra) -> dict:
  res = await client.post(f"/projects/{project_id}/tasks", json={"name": name, **extra})
  assert res.status_code == 200, res.text
  return res.json()


async def create_subtask(client: AsyncClient, task_id: str, name: str, **extra) -> dict:
  res = await client.post(f"/tasks/{task_id}/subtasks", json={"name": name, **extra})
  assert res.status_code == 200, res.text
  return res.json()


def tasks_json(*titles: str, subtasks: int = 2) -> str:
  data = [
    {
      "title": t,
      "description": f"{t} description",
      "subtasks": [{"title": f"{t} sub {i + 1}", "description": f"{t} sub {i + 1} description"} for i in range(subtasks)],
    }
    for t in titles
  ]
  return "Here you go:\n```json\n" + json.dumps(data) + "\n```"


def subtasks_json(*titles: str) -> str:
  return json.dumps([{"title": t, "description": f"{t} description"} for t in titles])
