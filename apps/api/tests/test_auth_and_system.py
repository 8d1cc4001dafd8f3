from __future__ import annotations

import pytest
from httpx import AsyncClient

from conftest import login
from taskloom.config import settings


@pytest.mark.anyio
async def test_endpoints_require_a_session(client: AsyncClient) -> None:
  for method, path in (
    ("GET", "/projects"),
    ("POST", "/ai/generate-tasks"),
    ("GET", "/auth/me"),
  ):
    res = await client.request(method, path, json={} if method == "POST" else None)
    assert res.status_code == 401, path
    assert res.json() == {"error": "Unauthorized"}


@pytest.mark.anyio
async def test_login_me_logout(client: AsyncClient) -> None:
  user = await login(client)
  assert user["email"] == "demo@taskloom.local"
  me = await client.get("/auth/me")
  assert me.status_code == 200, me.text
  assert me.json()["id"] == user["id"]

  assert (await client.post("/auth/logout")).status_code == 200
  assert (await client.get("/auth/me")).status_code == 401


@pytest.mark.anyio
async def test_login_sets_session_cookie(client: AsyncClient) -> None:
  res = await client.post("/auth/login", json={"email": "Demo@Taskloom.local", "password": "demo1234"})
  assert res.status_code == 200, res.text
  cookie = res.headers.get("set-cookie")
  assert cookie and "tl_session=" in cookie
  assert "httponly" in cookie.lower()


@pytest.mark.anyio
async def test_wrong_password_is_rejected(client: AsyncClient) -> None:
  res = await client.post("/auth/login", json={"email": "demo@taskloom.local", "password": "nope"})
  assert res.status_code == 401
  assert res.json() == {"error": "Invalid credentials"}


@pytest.mark.anyio
async def test_login_is_rate_limited_per_email(client: AsyncClient) -> None:
  limit = int(settings.rate_limit_login_email_per_minute)
  for _ in range(limit):
    await client.post("/auth/login", json={"email": "demo@taskloom.local", "password": "nope"})
  res = await client.post("/auth/login", json={"email": "demo@taskloom.local", "password": "demo1234"})
  assert res.status_code == 429
  assert res.headers.get("retry-after")


@pytest.mark.anyio
async def test_health_version_and_metrics(client: AsyncClient) -> None:
  health = await client.get("/health")
  assert health.json() == {"ok": True}
  assert health.headers["x-content-type-options"] == "nosniff"
  assert (await client.get("/version")).json()["version"] == settings.app_version

  snap = (await client.get("/metrics/runtime")).json()
  assert snap["requestCount24h"] >= 2
  assert "generations" in snap
