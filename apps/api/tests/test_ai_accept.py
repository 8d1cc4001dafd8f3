from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from conftest import FakeProvider, create_project, create_task, login, subtasks_json, tasks_json, use_provider
from taskloom.routers import ai as ai_routes


async def _project_with_ai_tasks(client: AsyncClient, *titles: str) -> tuple[dict, list[dict]]:
  p = await create_project(client)
  use_provider(FakeProvider(tasks_json(*titles)))
  res = await client.post("/ai/generate-tasks", json={"projectId": p["id"]})
  assert res.status_code == 200, res.text
  return p, res.json()["tasks"]


@pytest.mark.anyio
async def test_accept_task_flips_source_and_keeps_order(client: AsyncClient) -> None:
  await login(client)
  _, tasks = await _project_with_ai_tasks(client, "A", "B")
  res = await client.post("/ai/accept-task", json={"taskId": tasks[1]["id"]})
  assert res.status_code == 200, res.text
  data = res.json()
  assert data["message"] == "Task accepted successfully"
  assert data["task"]["sourceType"] == "user"
  assert data["task"]["orderIndex"] == tasks[1]["orderIndex"]
  assert data["task"]["description"] == "B description"


@pytest.mark.anyio
async def test_accept_task_twice_is_not_found(client: AsyncClient) -> None:
  await login(client)
  _, tasks = await _project_with_ai_tasks(client, "A")
  assert (await client.post("/ai/accept-task", json={"taskId": tasks[0]["id"]})).status_code == 200
  res = await client.post("/ai/accept-task", json={"taskId": tasks[0]["id"]})
  assert res.status_code == 404
  assert res.json() == {"error": "AI task not found"}


@pytest.mark.anyio
async def test_accept_user_task_is_not_found(client: AsyncClient) -> None:
  await login(client)
  p = await create_project(client)
  t = await create_task(client, p["id"], "Manual")
  res = await client.post("/ai/accept-task", json={"taskId": t["id"]})
  assert res.status_code == 404


@pytest.mark.anyio
async def test_accept_task_owned_by_someone_else_is_not_found(client: AsyncClient) -> None:
  await login(client, "other@taskloom.local")
  _, tasks = await _project_with_ai_tasks(client, "Theirs")
  await login(client, "demo@taskloom.local")
  res = await client.post("/ai/accept-task", json={"taskId": tasks[0]["id"]})
  assert res.status_code == 404


@pytest.mark.anyio
async def test_accept_all_tasks(client: AsyncClient) -> None:
  await login(client)
  p, tasks = await _project_with_ai_tasks(client, "A", "B", "C")
  res = await client.post("/ai/accept-all-tasks", json={"projectId": p["id"]})
  assert res.status_code == 200, res.text
  data = res.json()
  assert data["acceptedCount"] == 3
  assert data["message"] == "Successfully accepted 3 AI task(s)"
  assert [t["id"] for t in data["tasks"]] == [t["id"] for t in tasks]
  assert all(t["sourceType"] == "user" for t in data["tasks"])

  # Generated subtasks of accepted tasks stay AI-sourced.
  subs = (await client.get(f"/tasks/{tasks[0]['id']}/subtasks")).json()
  assert subs and all(s["sourceType"] == "ai" for s in subs)


@pytest.mark.anyio
async def test_accept_all_tasks_with_nothing_to_accept(client: AsyncClient) -> None:
  await login(client)
  p = await create_project(client)
  await create_task(client, p["id"], "Manual")
  res = await client.post("/ai/accept-all-tasks", json={"projectId": p["id"]})
  assert res.status_code == 200, res.text
  assert res.json() == {"acceptedCount": 0, "tasks": [], "message": "No AI tasks found to accept"}


@pytest.mark.anyio
async def test_accept_subtask_and_accept_all_subtasks(client: AsyncClient) -> None:
  await login(client)
  p = await create_project(client)
  t = await create_task(client, p["id"], "Design homepage")
  use_provider(FakeProvider(subtasks_json("S1", "S2", "S3")))
  subs = (await client.post("/ai/generate-subtasks", json={"taskId": t["id"]})).json()["subtasks"]

  one = await client.post("/ai/accept-subtask", json={"subtaskId": subs[0]["id"]})
  assert one.status_code == 200, one.text
  assert one.json()["message"] == "Subtask accepted successfully"
  assert one.json()["subtask"]["sourceType"] == "user"

  rest = await client.post("/ai/accept-all-subtasks", json={"taskId": t["id"]})
  assert rest.status_code == 200, rest.text
  assert rest.json()["acceptedCount"] == 2
  assert rest.json()["message"] == "Successfully accepted 2 AI subtask(s)"

  again = await client.post("/ai/accept-all-subtasks", json={"taskId": t["id"]})
  assert again.json() == {"acceptedCount": 0, "subtasks": [], "message": "No AI subtasks found to accept"}


@pytest.mark.anyio
async def test_accept_endpoints_require_ids(client: AsyncClient) -> None:
  await login(client)
  cases = [
    ("/ai/accept-task", "Task ID is required"),
    ("/ai/accept-subtask", "Subtask ID is required"),
    ("/ai/accept-all-tasks", "Project ID is required"),
    ("/ai/accept-all-subtasks", "Task ID is required"),
  ]
  for path, message in cases:
    res = await client.post(path, json={})
    assert res.status_code == 400, path
    assert res.json() == {"error": message}


@pytest.mark.anyio
async def test_storage_failure_on_accept_renders_json_error(client: AsyncClient, monkeypatch) -> None:
  await login(client)
  _, tasks = await _project_with_ai_tasks(client, "A")

  async def broken_audit(*args, **kwargs):
    raise OperationalError("INSERT INTO audit_events", {}, Exception("db down"))

  monkeypatch.setattr(ai_routes, "write_audit", broken_audit)
  res = await client.post("/ai/accept-task", json={"taskId": tasks[0]["id"]})
  assert res.status_code == 500
  assert res.json() == {"error": "Storage failure"}

  listed = (await client.get(f"/tasks/{tasks[0]['id']}")).json()
  assert listed["sourceType"] == "ai"
