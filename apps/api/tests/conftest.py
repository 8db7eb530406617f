from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{ROOT / 'kanban_test.db'}")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="kanban-uploads-"))
os.environ.setdefault("APP_SECRET", "test-secret")

from kanban.config import settings
from kanban.db import engine
from kanban.main import app
from kanban.models import Base
from kanban.rate_limit import limiter

PASSWORD = "secret123"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


async def _reset_db() -> None:
  limiter.reset_prefix("auth:")
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
    await conn.run_sync(Base.metadata.create_all)
  await engine.dispose()


@pytest.fixture
async def clean_db() -> None:
  if not settings.is_test_db():
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. kanban_test)."
    )
  await _reset_db()
  yield
  await engine.dispose()


@pytest.fixture
async def client(clean_db) -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


@pytest.fixture
async def other_client(clean_db) -> AsyncClient:
  """A second browser: its own cookie jar against the same app."""
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


@pytest.fixture
async def third_client(clean_db) -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


async def register(client: AsyncClient, email: str, *, name: str | None = None, password: str = PASSWORD) -> dict:
  res = await client.post("/auth/register", json={"email": email, "password": password, "name": name or email.split("@")[0]})
  assert res.status_code == 201, res.text
  assert "auth_token=" in (res.headers.get("set-cookie") or "")
  return res.json()["user"]


async def create_board(client: AsyncClient, name: str = "Roadmap") -> dict:
  res = await client.post("/boards", json={"name": name})
  assert res.status_code == 201, res.text
  return res.json()


async def add_member(owner: AsyncClient, member: AsyncClient, board_id: str, email: str) -> None:
  inv = await owner.post(f"/boards/{board_id}/invitations", json={"email": email})
  assert inv.status_code == 201, inv.text
  acc = await member.post(f"/invitations/{inv.json()['invitation']['id']}/accept")
  assert acc.status_code == 200, acc.text


async def create_card(client: AsyncClient, column_id: str, title: str, **fields) -> dict:
  res = await client.post(f"/columns/{column_id}/cards", json={"title": title, **fields})
  assert res.status_code == 201, res.text
  return res.json()["card"]


async def column_titles(client: AsyncClient, board_id: str) -> dict[str, list[tuple[str, int]]]:
  """Column name -> [(card title, position)] in position order."""
  res = await client.get(f"/boards/{board_id}")
  assert res.status_code == 200, res.text
  return {c["name"]: [(k["title"], k["position"]) for k in c["cards"]] for c in res.json()["columns"]}
