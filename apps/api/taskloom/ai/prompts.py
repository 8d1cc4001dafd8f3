from __future__ import annotations

from taskloom.ai.context import EntityContext, ExistingItem, ProjectGenerationContext, TaskGenerationContext

ITEMS_PER_GENERATION = 5

_PROJECT_TASKS_TEMPLATE = """You are a project management assistant. Generate UNIQUE, NON-DUPLICATE tasks that complement existing work.

Project Information:
Title: {project_title}
Description: {project_description}
Comments: {project_comments}

EXISTING TASKS (DO NOT DUPLICATE - be completely different):
{existing_tasks}

EXISTING SUBTASKS (for reference):
{existing_subtasks}

CRITICAL REQUIREMENTS:
1. Generate EXACTLY {count} NEW tasks that are COMPLETELY DIFFERENT from existing tasks
2. Each task must be UNIQUE - no similar titles or concepts to existing tasks
3. Each task should have 2-3 diverse subtasks
4. Think creatively - explore different aspects, phases, or angles of the project
5. Avoid any overlap with existing task titles or core concepts
6. Generate complementary tasks that fill gaps in the existing work

UNIQUENESS STRATEGY:
- If existing tasks focus on development, suggest planning/design/testing/deployment
- If existing tasks are technical, suggest business/marketing/user experience aspects
- If existing tasks are high-level, suggest detailed implementation tasks
- Explore different project phases: research, design, development, testing, deployment, maintenance

Return ONLY a valid JSON array with exactly this structure:
[
  {{
    "title": "Unique task title (max 100 chars, must be different from all existing)",
    "description": "Detailed task description (max 500 chars)",
    "subtasks": [
      {{
        "title": "Subtask title (max 100 chars)",
        "description": "Subtask description (max 300 chars)"
      }}
    ]
  }}
]

Response:"""

_TASK_SUBTASKS_TEMPLATE = """You are a task breakdown assistant. Generate UNIQUE subtasks that complement existing work for this specific task.

Project Information:
Title: {project_title}
Description: {project_description}
Comments: {project_comments}

Task Information:
Title: {task_title}
Description: {task_description}
Comments: {task_comments}

EXISTING SUBTASKS (DO NOT DUPLICATE - be completely different):
{existing_subtasks}

CRITICAL REQUIREMENTS:
1. Generate EXACTLY {count} NEW subtasks that are COMPLETELY DIFFERENT from existing subtasks
2. Each subtask must be UNIQUE - no similar titles or concepts to existing subtasks
3. All subtasks must contribute to completing the main task: "{task_title}"
4. Avoid any overlap with existing subtask titles or core concepts
5. Generate complementary subtasks that fill gaps in the existing work

UNIQUENESS STRATEGY:
- If existing subtasks focus on setup, suggest implementation/testing/documentation
- If existing subtasks are high-level, suggest detailed implementation steps
- Explore different aspects: preparation, execution, validation, optimization, documentation

Return ONLY a valid JSON array with exactly this structure:
[
  {{
    "title": "Unique subtask title (max 100 chars, must be different from all existing)",
    "description": "Detailed subtask description (max 300 chars)"
  }}
]

Response:"""

_ENHANCE_TEMPLATE = """You are a project management writing assistant. Improve the description of a {entity_type}.

{entity_label} Title: {title}

Current Description:
{current_description}

Additional Context (comments):
{comments}

REQUIREMENTS:
1. Keep every fact from the current description; do not invent deadlines, people or numbers
2. State the goal and the expected outcome clearly
3. Incorporate relevant points from the comments
4. Use short paragraphs or bullet points, at most 1200 characters
5. Return ONLY the improved description text, with no preamble and no markdown fences

Improved Description:"""


def format_existing(items: list[ExistingItem]) -> str:
  if not items:
    return "None"
  return "\n".join(f"- [{(i.source or 'user').upper()}] {i.title}: {i.description or 'No description'}" for i in items)


def _ctx_fields(ctx: EntityContext, prefix: str) -> dict[str, str]:
  return {
    f"{prefix}_title": ctx.title,
    f"{prefix}_description": ctx.description or "No description provided",
    f"{prefix}_comments": ctx.comments_text() or "No comments",
  }


def build_project_tasks_prompt(ctx: ProjectGenerationContext) -> str:
  return _PROJECT_TASKS_TEMPLATE.format(
    **_ctx_fields(ctx.project, "project"),
    existing_tasks=format_existing(ctx.existing_tasks),
    existing_subtasks=format_existing(ctx.existing_subtasks),
    count=ITEMS_PER_GENERATION,
  )


def build_task_subtasks_prompt(ctx: TaskGenerationContext) -> str:
  return _TASK_SUBTASKS_TEMPLATE.format(
    **_ctx_fields(ctx.project, "project"),
    **_ctx_fields(ctx.task, "task"),
    existing_subtasks=format_existing(ctx.existing_subtasks),
    count=ITEMS_PER_GENERATION,
  )


def build_enhance_description_prompt(entity_type: str, ctx: EntityContext) -> str:
  return _ENHANCE_TEMPLATE.format(
    entity_type=entity_type,
    entity_label=entity_type.capitalize(),
    title=ctx.title,
    current_description=ctx.description or "No description provided",
    comments=ctx.comments_text() or "No comments",
  )
