from __future__ import annotations

import asyncio
import logging
import os
import secrets

from sqlalchemy import select

from taskloom.db import SessionLocal
from taskloom.logging_setup import configure_logging
from taskloom.models import Comment, Project, ProjectDetail, Task, TaskDetail, User
from taskloom.security import hash_password

logger = logging.getLogger(__name__)

DEMO_PROJECT_NAME = "Website Relaunch"


def _bootstrap_password(env_key: str) -> tuple[str, bool]:
  configured = (os.getenv(env_key) or "").strip()
  if configured:
    return configured, False
  return secrets.token_urlsafe(14), True


async def seed() -> None:
  async with SessionLocal() as db:
    email = (os.getenv("SEED_USER_EMAIL") or "demo@taskloom.local").strip().lower()
    password, generated = _bootstrap_password("SEED_USER_PASSWORD")

    res = await db.execute(select(User).where(User.email == email))
    user = res.scalar_one_or_none()
    if not user:
      user = User(email=email, name="Demo", password_hash=hash_password(password))
      db.add(user)
      await db.flush()
      logger.info("Created seed user %s (generated password=%s)", email, str(generated).lower())
      if generated:
        print(f"Taskloom seed credentials: {email}={password}")

    if os.getenv("SEED_DEMO_PROJECT", "").strip().lower() in ("1", "true", "yes", "y"):
      pres = await db.execute(select(Project).where(Project.user_id == user.id, Project.name == DEMO_PROJECT_NAME))
      if pres.scalar_one_or_none() is None:
        project = Project(user_id=user.id, name=DEMO_PROJECT_NAME, status="Active", order_index=0)
        db.add(project)
        await db.flush()
        db.add(ProjectDetail(project_id=project.id, description="Relaunch the marketing site with a refreshed brand."))
        db.add(Comment(entity_type="project", entity_id=project.id, content="Launch target is end of quarter."))

        task = Task(project_id=project.id, name="Design homepage", status="To-Do", order_index=0)
        db.add(task)
        await db.flush()
        db.add(TaskDetail(task_id=task.id, description="Hero section, navigation and footer for the new homepage."))

    await db.commit()


def main() -> None:
  configure_logging()
  asyncio.run(seed())


if __name__ == "__main__":
  main()
