from __future__ import annotations

from taskloom.ai.context import EntityContext, ExistingItem, ProjectGenerationContext, TaskGenerationContext
from taskloom.ai.prompts import (
  build_enhance_description_prompt,
  build_project_tasks_prompt,
  build_task_subtasks_prompt,
  format_existing,
)


def _project() -> EntityContext:
  return EntityContext(title="Website Relaunch", description=None, comments=["Launch in Q4", "Keep the blue"])


def test_format_existing_tags_source_and_handles_empty() -> None:
  assert format_existing([]) == "None"
  items = [
    ExistingItem(id="1", title="Design homepage", description="Hero", source="user"),
    ExistingItem(id="2", title="Write copy", description=None, source="ai"),
  ]
  assert format_existing(items) == "- [USER] Design homepage: Hero\n- [AI] Write copy: No description"


def test_project_prompt_contains_context_and_instructions() -> None:
  ctx = ProjectGenerationContext(
    project=_project(),
    user_tasks=[ExistingItem(id="1", title="Design homepage", description=None, source="user")],
    ai_tasks=[],
    user_subtasks=[],
    ai_subtasks=[],
  )
  prompt = build_project_tasks_prompt(ctx)
  assert "Title: Website Relaunch" in prompt
  assert "Description: No description provided" in prompt
  assert "Launch in Q4\nKeep the blue" in prompt
  assert "- [USER] Design homepage: No description" in prompt
  assert "EXISTING SUBTASKS (for reference):\nNone" in prompt
  assert "2-3 diverse subtasks" in prompt
  assert '"subtasks": [' in prompt


def test_task_prompt_includes_parent_project() -> None:
  ctx = TaskGenerationContext(
    project=_project(),
    task=EntityContext(title="Design homepage", description="Hero and nav"),
    user_subtasks=[],
    ai_subtasks=[ExistingItem(id="9", title="Pick fonts", description="Two families", source="ai")],
  )
  prompt = build_task_subtasks_prompt(ctx)
  assert "Website Relaunch" in prompt
  assert "Hero and nav" in prompt
  assert "- [AI] Pick fonts: Two families" in prompt
  assert "EXACTLY 5 NEW subtasks" in prompt
  assert '"subtasks"' not in prompt


def test_enhance_prompt_names_entity_kind() -> None:
  prompt = build_enhance_description_prompt("subtask", EntityContext(title="Wireframes", description="rough"))
  assert "description of a subtask" in prompt
  assert "Subtask Title: Wireframes" in prompt
  assert "No comments" in prompt
