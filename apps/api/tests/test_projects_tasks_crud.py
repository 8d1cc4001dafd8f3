from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from conftest import FakeProvider, create_project, create_subtask, create_task, login, tasks_json, use_provider
from taskloom.db import SessionLocal
from taskloom.models import AiGeneration, AuditEvent, Comment, Subtask, Task


@pytest.mark.anyio
async def test_create_multiple_tasks_assigns_order_index(client: AsyncClient) -> None:
  await login(client)
  p = await create_project(client)
  created = [await create_task(client, p["id"], f"T{i}") for i in range(3)]
  assert [t["orderIndex"] for t in created] == [0, 1, 2]
  assert all(t["sourceType"] == "user" for t in created)


@pytest.mark.anyio
async def test_project_list_hides_archived_by_default(client: AsyncClient) -> None:
  await login(client)
  a = await create_project(client, "Active one")
  b = await create_project(client, "Old one")
  res = await client.patch(f"/projects/{b['id']}", json={"archived": True})
  assert res.status_code == 200, res.text
  assert res.json()["archived"] is True

  visible = (await client.get("/projects")).json()
  assert [p["id"] for p in visible] == [a["id"]]
  everything = (await client.get("/projects?includeArchived=true")).json()
  assert {p["id"] for p in everything} == {a["id"], b["id"]}


@pytest.mark.anyio
async def test_project_update_and_due_date(client: AsyncClient) -> None:
  await login(client)
  p = await create_project(client, dueDate="2026-12-01T00:00:00Z")
  assert p["dueDate"].startswith("2026-12-01")
  res = await client.patch(f"/projects/{p['id']}", json={"name": "Renamed", "status": "Completed", "dueDate": None})
  assert res.status_code == 200, res.text
  data = res.json()
  assert (data["name"], data["status"], data["dueDate"]) == ("Renamed", "Completed", None)


@pytest.mark.anyio
async def test_invalid_status_is_a_bad_request(client: AsyncClient) -> None:
  await login(client)
  res = await client.post("/projects", json={"name": "X", "status": "Paused"})
  assert res.status_code == 400
  assert "error" in res.json()


@pytest.mark.anyio
async def test_reorder_projects(client: AsyncClient) -> None:
  await login(client)
  ids = [(await create_project(client, n))["id"] for n in ("A", "B", "C")]
  res = await client.post("/projects/reorder", json={"projectIds": list(reversed(ids))})
  assert res.status_code == 200, res.text
  assert [p["name"] for p in (await client.get("/projects")).json()] == ["C", "B", "A"]

  bad = await client.post("/projects/reorder", json={"projectIds": ids[:2]})
  assert bad.status_code == 400


@pytest.mark.anyio
async def test_reorder_tasks_rewrites_contiguous_indexes(client: AsyncClient) -> None:
  await login(client)
  p = await create_project(client)
  t = [await create_task(client, p["id"], n) for n in ("A", "B", "C")]
  res = await client.post(f"/projects/{p['id']}/tasks/reorder", json={"taskIds": [t[2]["id"], t[0]["id"], t[1]["id"]]})
  assert res.status_code == 200, res.text
  listed = (await client.get(f"/projects/{p['id']}/tasks")).json()
  assert [(x["name"], x["orderIndex"]) for x in listed] == [("C", 0), ("A", 1), ("B", 2)]

  dup = await client.post(f"/projects/{p['id']}/tasks/reorder", json={"taskIds": [t[0]["id"], t[0]["id"], t[1]["id"]]})
  assert dup.status_code == 400
  assert dup.json() == {"error": "taskIds must include all tasks"}


@pytest.mark.anyio
async def test_reorder_subtasks(client: AsyncClient) -> None:
  await login(client)
  p = await create_project(client)
  t = await create_task(client, p["id"], "Parent")
  s = [await create_subtask(client, t["id"], n) for n in ("A", "B")]
  res = await client.post(f"/tasks/{t['id']}/subtasks/reorder", json={"subtaskIds": [s[1]["id"], s[0]["id"]]})
  assert res.status_code == 200, res.text
  listed = (await client.get(f"/tasks/{t['id']}/subtasks")).json()
  assert [x["name"] for x in listed] == ["B", "A"]


@pytest.mark.anyio
async def test_patch_cannot_change_source_type(client: AsyncClient) -> None:
  await login(client)
  p = await create_project(client)
  use_provider(FakeProvider(tasks_json("Drafted")))
  ai_task = (await client.post("/ai/generate-tasks", json={"projectId": p["id"]})).json()["tasks"][0]

  res = await client.patch(f"/tasks/{ai_task['id']}", json={"name": "Edited", "status": "In Progress", "sourceType": "user"})
  assert res.status_code == 200, res.text
  data = res.json()
  assert (data["name"], data["status"], data["sourceType"]) == ("Edited", "In Progress", "ai")


@pytest.mark.anyio
async def test_subtask_crud(client: AsyncClient) -> None:
  await login(client)
  p = await create_project(client)
  t = await create_task(client, p["id"], "Parent")
  s = await create_subtask(client, t["id"], "Child", description="Details here")
  assert s["orderIndex"] == 0
  assert s["description"] == "Details here"

  upd = await client.patch(f"/subtasks/{s['id']}", json={"status": "Done"})
  assert upd.status_code == 200, upd.text
  assert upd.json()["status"] == "Done"
  assert upd.json()["description"] == "Details here"

  assert (await client.delete(f"/subtasks/{s['id']}")).status_code == 200
  assert (await client.get(f"/subtasks/{s['id']}")).status_code == 404


@pytest.mark.anyio
async def test_delete_project_cascades(client: AsyncClient) -> None:
  await login(client)
  p = await create_project(client, description="Doomed")
  t = await create_task(client, p["id"], "Task")
  s = await create_subtask(client, t["id"], "Sub")
  await client.post(f"/comments/task/{t['id']}", json={"content": "note"})
  await client.post(f"/comments/subtask/{s['id']}", json={"content": "note"})
  use_provider(FakeProvider(tasks_json("AI")))
  await client.post("/ai/generate-tasks", json={"projectId": p["id"]})

  res = await client.delete(f"/projects/{p['id']}")
  assert res.status_code == 200, res.text
  assert (await client.get(f"/projects/{p['id']}")).status_code == 404

  async with SessionLocal() as db:
    for model, where in (
      (Task, Task.project_id == p["id"]),
      (Subtask, Subtask.task_id == t["id"]),
      (Comment, Comment.entity_id.in_([t["id"], s["id"]])),
      (AiGeneration, AiGeneration.entity_id == p["id"]),
    ):
      res = await db.execute(select(func.count()).select_from(model).where(where))
      assert res.scalar_one() == 0, model.__name__


@pytest.mark.anyio
async def test_delete_task_removes_its_subtasks(client: AsyncClient) -> None:
  await login(client)
  p = await create_project(client)
  t = await create_task(client, p["id"], "Task")
  await create_subtask(client, t["id"], "Sub")
  assert (await client.delete(f"/tasks/{t['id']}")).status_code == 200
  assert (await client.get(f"/tasks/{t['id']}/subtasks")).status_code == 404
  async with SessionLocal() as db:
    res = await db.execute(select(func.count()).select_from(Subtask).where(Subtask.task_id == t["id"]))
    assert res.scalar_one() == 0


@pytest.mark.anyio
async def test_mutations_are_audited(client: AsyncClient) -> None:
  await login(client)
  p = await create_project(client)
  await create_task(client, p["id"], "Audited")
  async with SessionLocal() as db:
    res = await db.execute(select(AuditEvent.event_type).where(AuditEvent.project_id == p["id"]))
    events = set(res.scalars().all())
  assert {"project.created", "task.created"} <= events
