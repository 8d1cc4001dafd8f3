"""Generation flows shared by the AI endpoints.

Both flows run verify -> read hierarchy -> prompt -> invoke -> extract ->
persist -> marker -> audit -> commit. Everything before persist is read-only,
so a provider or extraction failure leaves the database as it was.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskloom.ai.context import load_entity_context, load_project_context, load_task_context
from taskloom.ai.extraction import extract_subtasks, extract_tasks
from taskloom.ai.merge import (
  InsertedSubtask,
  InsertedTask,
  MergeResult,
  persist_generated_subtasks,
  persist_generated_tasks,
  upsert_generation_marker,
)
from taskloom.ai.prompts import build_enhance_description_prompt, build_project_tasks_prompt, build_task_subtasks_prompt
from taskloom.ai.providers import AIProvider, invoke_provider
from taskloom.audit import write_audit
from taskloom.errors import GenerationError, PersistError
from taskloom.hierarchy import save_description
from taskloom.metrics import runtime_metrics
from taskloom.ownership import EntityRef, get_owned_project, get_owned_task, project_id_for, verify_ownership
from taskloom.schemas import GeneratedSubtaskItem, GeneratedTaskItem

logger = logging.getLogger(__name__)


async def _generate_text(
  provider: AIProvider, *, generation_type: str, prompt: str, context: dict[str, Any]
) -> str:
  try:
    return await invoke_provider(provider, prompt=prompt, context=context)
  except GenerationError:
    runtime_metrics.observe_generation(generation_type, "failed")
    raise


def _extract(generation_type: str, text: str, extractor):
  try:
    return extractor(text)
  except GenerationError as exc:
    logger.warning("Could not use %s generation output: %s", generation_type, exc.message)
    runtime_metrics.observe_generation(generation_type, "failed")
    raise


async def generate_tasks_for_project(
  db: AsyncSession, provider: AIProvider, *, user_id: str, project_id: str, refresh: bool
) -> MergeResult[GeneratedTaskItem, InsertedTask]:
  project = await get_owned_project(db, user_id, project_id)
  ctx = await load_project_context(db, project)
  text = await _generate_text(
    provider,
    generation_type="tasks",
    prompt=build_project_tasks_prompt(ctx),
    context={
      "kind": "generate_tasks",
      "title": project.name,
      "existingTitles": [i.title for i in ctx.existing_tasks],
    },
  )
  items = _extract("tasks", text, extract_tasks)

  try:
    result = await persist_generated_tasks(db, project_id=project.id, items=items, refresh=refresh)
    await upsert_generation_marker(db, entity_type="project", entity_id=project.id, generation_type="tasks")
    await write_audit(
      db,
      event_type="ai.tasks.generated",
      entity_type="Project",
      entity_id=project.id,
      project_id=project.id,
      actor_id=user_id,
      payload={
        "refresh": refresh,
        "inserted": len(result.succeeded),
        "failed": [f.input.title for f in result.failed],
      },
    )
    await db.commit()
  except SQLAlchemyError as exc:
    await db.rollback()
    logger.exception("Persisting generated tasks failed for project %s", project_id)
    runtime_metrics.observe_generation("tasks", "failed")
    raise PersistError("Failed to save generated tasks") from exc

  runtime_metrics.observe_generation("tasks", "ok")
  logger.info(
    "Generated %d task(s) for project %s (refresh=%s, failed=%d)",
    len(result.succeeded),
    project.id,
    refresh,
    len(result.failed),
  )
  return result


async def generate_subtasks_for_task(
  db: AsyncSession, provider: AIProvider, *, user_id: str, task_id: str, refresh: bool
) -> MergeResult[GeneratedSubtaskItem, InsertedSubtask]:
  task = await get_owned_task(db, user_id, task_id)
  ctx = await load_task_context(db, task)
  text = await _generate_text(
    provider,
    generation_type="subtasks",
    prompt=build_task_subtasks_prompt(ctx),
    context={
      "kind": "generate_subtasks",
      "title": task.name,
      "existingTitles": [i.title for i in ctx.existing_subtasks],
    },
  )
  items = _extract("subtasks", text, extract_subtasks)

  try:
    result = await persist_generated_subtasks(db, task_id=task.id, items=items, refresh=refresh)
    await upsert_generation_marker(db, entity_type="task", entity_id=task.id, generation_type="subtasks")
    await write_audit(
      db,
      event_type="ai.subtasks.generated",
      entity_type="Task",
      entity_id=task.id,
      project_id=task.project_id,
      actor_id=user_id,
      payload={
        "refresh": refresh,
        "inserted": len(result.succeeded),
        "failed": [f.input.title for f in result.failed],
      },
    )
    await db.commit()
  except SQLAlchemyError as exc:
    await db.rollback()
    logger.exception("Persisting generated subtasks failed for task %s", task_id)
    runtime_metrics.observe_generation("subtasks", "failed")
    raise PersistError("Failed to save generated subtasks") from exc

  runtime_metrics.observe_generation("subtasks", "ok")
  logger.info(
    "Generated %d subtask(s) for task %s (refresh=%s, failed=%d)",
    len(result.succeeded),
    task.id,
    refresh,
    len(result.failed),
  )
  return result


async def enhance_description(db: AsyncSession, provider: AIProvider, *, user_id: str, ref: EntityRef) -> str:
  entity = await verify_ownership(db, user_id, ref)
  ctx = await load_entity_context(db, ref, entity)
  text = await _generate_text(
    provider,
    generation_type="description",
    prompt=build_enhance_description_prompt(ref.kind, ctx),
    context={
      "kind": "enhance_description",
      "title": ctx.title,
      "description": ctx.description,
      "comments": ctx.comments,
    },
  )
  description = text.strip()
  if not description:
    runtime_metrics.observe_generation("description", "failed")
    raise GenerationError("Language model returned an empty description")

  await save_description(db, ref, description)
  await write_audit(
    db,
    event_type="ai.description.enhanced",
    entity_type=ref.label,
    entity_id=ref.id,
    project_id=await project_id_for(db, entity),
    actor_id=user_id,
    payload={"length": len(description)},
  )
  await db.commit()
  runtime_metrics.observe_generation("description", "ok")
  return description
