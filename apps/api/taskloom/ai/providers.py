from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from taskloom.config import Settings
from taskloom.errors import GenerationError

logger = logging.getLogger(__name__)

_PHASES = (
  ("Research", "Collect requirements, constraints and prior art"),
  ("Design", "Sketch the structure and agree on the approach"),
  ("Build", "Implement the smallest complete slice"),
  ("Test", "Verify behavior against the agreed outcome"),
  ("Launch", "Roll out and announce the result"),
  ("Document", "Write down decisions and usage notes"),
  ("Review", "Collect feedback and list follow-ups"),
  ("Maintain", "Plan upkeep and ownership after delivery"),
)

_STEPS = (
  ("Outline", "List the concrete steps and expected output"),
  ("Execute", "Carry out the steps and record progress"),
  ("Check", "Confirm the result meets the description"),
  ("Prepare", "Gather inputs and access needed to start"),
  ("Share", "Send the result to stakeholders for review"),
  ("Refine", "Address feedback and tidy loose ends"),
  ("Measure", "Define how success will be observed"),
)


class AIProvider(Protocol):
  async def generate(self, *, prompt: str, context: dict[str, Any]) -> str: ...


def _short(text: str | None, limit: int) -> str:
  s = " ".join((text or "").split())
  return s if len(s) <= limit else s[: limit - 3].rstrip() + "..."


def _unused(options: tuple[tuple[str, str], ...], existing: list[str], count: int) -> list[tuple[str, str]]:
  taken = " ".join(existing).lower()
  fresh = [o for o in options if o[0].lower() not in taken]
  return (fresh + [o for o in options if o not in fresh])[:count]


@dataclass
class LocalDeterministicProvider:
  """Offline provider producing stable, schema-conformant output."""

  async def generate(self, *, prompt: str, context: dict[str, Any]) -> str:
    kind = context.get("kind", "generic")
    title = _short(context.get("title") or "Untitled", 60)
    existing = [str(x) for x in (context.get("existingTitles") or [])]

    if kind == "generate_tasks":
      tasks = []
      for phase, hint in _unused(_PHASES, existing, 5):
        tasks.append(
          {
            "title": f"{phase}: {title}",
            "description": f"{hint} for '{title}'.",
            "subtasks": [
              {"title": f"{step} {phase.lower()} work", "description": f"{step_hint} for the {phase.lower()} phase."}
              for step, step_hint in _STEPS[:2]
            ],
          }
        )
      return "Here are the tasks:\n```json\n" + json.dumps(tasks, indent=2) + "\n```"

    if kind == "generate_subtasks":
      subtasks = [
        {"title": f"{step}: {title}", "description": f"{hint} for '{title}'."}
        for step, hint in _unused(_STEPS, existing, 5)
      ]
      return "```json\n" + json.dumps(subtasks, indent=2) + "\n```"

    if kind == "enhance_description":
      current = (context.get("description") or "").strip()
      comments = [str(c) for c in (context.get("comments") or []) if str(c).strip()]
      lines = [f"Goal: deliver '{title}' with a clear, verifiable outcome."]
      if current:
        lines.extend(["", current])
      if comments:
        lines.extend(["", "Notes from discussion:"])
        lines.extend(f"- {_short(c, 160)}" for c in comments[:5])
      lines.extend(["", "Done when:", "- The outcome is reviewed and accepted", "- Follow-ups are captured as tasks"])
      return "\n".join(lines)

    return json.dumps({"echo": prompt, "context": context}, indent=2)


@dataclass
class OpenAICompatibleProvider:
  api_key: str
  base_url: str
  model: str
  temperature: float
  timeout: float

  async def generate(self, *, prompt: str, context: dict[str, Any]) -> str:
    headers = {"Authorization": f"Bearer {self.api_key}"}
    async with httpx.AsyncClient(base_url=self.base_url, headers=headers, timeout=self.timeout) as client:
      # OpenAI-compatible chat completions API, single request, no streaming.
      r = await client.post(
        "/chat/completions",
        json={
          "model": self.model,
          "messages": [
            {"role": "system", "content": "You are a planning assistant for a personal project manager."},
            {"role": "user", "content": prompt},
          ],
          "temperature": self.temperature,
        },
      )
      r.raise_for_status()
      data = r.json()
      return data["choices"][0]["message"]["content"]


def build_ai_provider(settings: Settings) -> AIProvider:
  if settings.ai_provider.lower() == "openai":
    if not settings.openai_api_key:
      raise RuntimeError("AI_PROVIDER=openai requires OPENAI_API_KEY")
    return OpenAICompatibleProvider(
      api_key=settings.openai_api_key,
      base_url=settings.openai_base_url,
      model=settings.ai_model,
      temperature=settings.ai_temperature,
      timeout=settings.ai_timeout_seconds,
    )
  return LocalDeterministicProvider()


async def invoke_provider(provider: AIProvider, *, prompt: str, context: dict[str, Any]) -> str:
  try:
    text = await provider.generate(prompt=prompt, context=context)
  except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as exc:
    logger.exception("AI provider call failed (kind=%s)", context.get("kind"))
    raise GenerationError("Language model request failed") from exc
  return text or ""
