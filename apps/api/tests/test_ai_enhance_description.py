from __future__ import annotations

import pytest
from httpx import AsyncClient

from conftest import FakeProvider, create_project, create_subtask, create_task, login, use_provider


@pytest.mark.anyio
async def test_enhance_project_description_uses_comments(client: AsyncClient) -> None:
  await login(client)
  p = await create_project(client, "Website Relaunch", description="New site.")
  await client.post(f"/comments/project/{p['id']}", json={"content": "Launch by end of quarter"})

  fake = FakeProvider("  Relaunch the marketing site by end of quarter.\n")
  use_provider(fake)
  res = await client.post("/ai/enhance-description", json={"entityId": p["id"], "entityType": "project"})
  assert res.status_code == 200, res.text
  assert res.json() == {"description": "Relaunch the marketing site by end of quarter."}

  prompt = fake.calls[0]["prompt"]
  assert "New site." in prompt
  assert "Launch by end of quarter" in prompt
  assert fake.calls[0]["context"]["kind"] == "enhance_description"

  detail = (await client.get(f"/details/project/{p['id']}")).json()
  assert detail["description"] == "Relaunch the marketing site by end of quarter."


@pytest.mark.anyio
async def test_enhance_creates_missing_detail_for_subtask(client: AsyncClient) -> None:
  await login(client)
  p = await create_project(client)
  t = await create_task(client, p["id"], "Design homepage")
  s = await create_subtask(client, t["id"], "Wireframes")
  use_provider(FakeProvider("Sketch low-fidelity wireframes for the hero."))

  res = await client.post("/ai/enhance-description", json={"entityId": s["id"], "entityType": "subtask"})
  assert res.status_code == 200, res.text
  got = (await client.get(f"/subtasks/{s['id']}")).json()
  assert got["description"] == "Sketch low-fidelity wireframes for the hero."


@pytest.mark.anyio
async def test_enhance_with_local_provider(client: AsyncClient) -> None:
  await login(client)
  p = await create_project(client)
  t = await create_task(client, p["id"], "Design homepage", description="Hero section")
  res = await client.post("/ai/enhance-description", json={"entityId": t["id"], "entityType": "task"})
  assert res.status_code == 200, res.text
  text = res.json()["description"]
  assert "Design homepage" in text
  assert "Hero section" in text


@pytest.mark.anyio
async def test_enhance_validates_entity_reference(client: AsyncClient) -> None:
  await login(client)
  missing = await client.post("/ai/enhance-description", json={"entityType": "task"})
  assert missing.status_code == 400
  assert missing.json() == {"error": "Entity ID and type are required"}

  bad = await client.post("/ai/enhance-description", json={"entityId": "x", "entityType": "board"})
  assert bad.status_code == 400
  assert bad.json() == {"error": "Invalid entity type"}


@pytest.mark.anyio
async def test_enhance_empty_output_is_an_error(client: AsyncClient) -> None:
  await login(client)
  p = await create_project(client, description="Keep me")
  use_provider(FakeProvider("   "))
  res = await client.post("/ai/enhance-description", json={"entityId": p["id"], "entityType": "project"})
  assert res.status_code == 500
  detail = (await client.get(f"/details/project/{p['id']}")).json()
  assert detail["description"] == "Keep me"


@pytest.mark.anyio
async def test_enhance_foreign_entity_is_not_found(client: AsyncClient) -> None:
  await login(client, "other@taskloom.local")
  p = await create_project(client, "Private")
  await login(client)
  use_provider(FakeProvider("never used"))
  res = await client.post("/ai/enhance-description", json={"entityId": p["id"], "entityType": "project"})
  assert res.status_code == 404
  assert res.json() == {"error": "Project not found"}
