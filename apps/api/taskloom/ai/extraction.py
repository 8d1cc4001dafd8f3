from __future__ import annotations

import json
import logging
import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from taskloom.errors import ExtractionError, NoValidItemsError, ParseError
from taskloom.schemas import GeneratedSubtaskItem, GeneratedTaskItem

logger = logging.getLogger(__name__)

MAX_GENERATED_ITEMS = 5

_JSON_FENCE_RE = re.compile(r"```json\s*(\[[\s\S]*?\])\s*```", re.IGNORECASE)
_ANY_FENCE_RE = re.compile(r"```[A-Za-z0-9_-]*\s*(\[[\s\S]*?\])\s*```")

ItemT = TypeVar("ItemT", bound=BaseModel)


def extract_json_array(text: str) -> str:
  """Return the JSON array substring of a free-form model response.

  Tried in order: a fenced ``json`` block, any fenced block, then the span
  from the first ``[`` to the last ``]``.
  """
  content = text or ""
  for pattern in (_JSON_FENCE_RE, _ANY_FENCE_RE):
    m = pattern.search(content)
    if m:
      return m.group(1)
  start = content.find("[")
  end = content.rfind("]")
  if start != -1 and end > start:
    return content[start : end + 1]
  raise ExtractionError("No JSON array found in model response")


def _parse_array(text: str) -> list[Any]:
  raw = extract_json_array(text)
  try:
    data = json.loads(raw)
  except json.JSONDecodeError as exc:
    raise ParseError(f"Model response is not valid JSON: {exc.msg}") from exc
  if not isinstance(data, list):
    raise ParseError("Model response JSON is not an array")
  return data


def _validate_items(data: list[Any], model: type[ItemT], *, label: str) -> list[ItemT]:
  out: list[ItemT] = []
  for idx, element in enumerate(data):
    try:
      out.append(model.model_validate(element))
    except ValidationError as exc:
      logger.warning("Dropping invalid generated %s #%d: %s", label, idx, exc.errors(include_url=False))
  if not out:
    raise NoValidItemsError(f"No valid {label}s could be parsed from model response")
  return out[:MAX_GENERATED_ITEMS]


def extract_tasks(text: str) -> list[GeneratedTaskItem]:
  return _validate_items(_parse_array(text), GeneratedTaskItem, label="task")


def extract_subtasks(text: str) -> list[GeneratedSubtaskItem]:
  return _validate_items(_parse_array(text), GeneratedSubtaskItem, label="subtask")
