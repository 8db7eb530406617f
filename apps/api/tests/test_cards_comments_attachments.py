from __future__ import annotations

import os

import pytest
from httpx import AsyncClient

from kanban import storage
from kanban.config import settings

from conftest import add_member, create_board, create_card, register


async def _card(client: AsyncClient) -> tuple[str, dict]:
  board = await create_board(client)
  card = await create_card(client, board["columns"][0]["id"], "Write docs")
  return board["board"]["id"], card


@pytest.mark.anyio
async def test_card_fields_and_partial_update(client: AsyncClient, other_client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  stranger = await register(other_client, "stranger@example.com")
  board = await create_board(client)
  col = board["columns"][0]["id"]

  card = await create_card(
    client, col, "  Ship it ", priority="high", dueDate="2026-11-01", tags=["api", " api", "", "docs"], color="#ff0000"
  )
  assert card["title"] == "Ship it"
  assert card["priority"] == "high"
  assert card["dueDate"] == "2026-11-01"
  assert card["tags"] == ["api", "docs"]
  assert card["description"] == ""

  bad_priority = await client.post(f"/columns/{col}/cards", json={"title": "x", "priority": "whenever"})
  assert bad_priority.status_code == 400, bad_priority.text
  missing_title = await client.post(f"/columns/{col}/cards", json={"description": "no title"})
  assert missing_title.status_code == 400, missing_title.text
  assert "title" in missing_title.json()["message"]
  outsider = await client.post(f"/columns/{col}/cards", json={"title": "x", "assigneeId": stranger["id"]})
  assert outsider.status_code == 400, outsider.text

  patched = await client.patch(f"/cards/{card['id']}", json={"description": "Details", "dueDate": None})
  assert patched.status_code == 200, patched.text
  body = patched.json()["card"]
  assert body["description"] == "Details"
  assert body["dueDate"] is None
  assert body["title"] == "Ship it"
  assert body["priority"] == "high"
  assert body["tags"] == ["api", "docs"]


@pytest.mark.anyio
async def test_comments_author_rule(client: AsyncClient, other_client: AsyncClient) -> None:
  await register(client, "owner@example.com", name="Olivia")
  await register(other_client, "member@example.com", name="Max")
  bid, card = await _card(client)
  await add_member(client, other_client, bid, "member@example.com")

  empty = await client.post(f"/cards/{card['id']}/comments", json={"content": "   "})
  assert empty.status_code == 400, empty.text

  first = await client.post(f"/cards/{card['id']}/comments", json={"content": " First! "})
  assert first.status_code == 201, first.text
  assert first.json()["comment"]["content"] == "First!"
  second = await other_client.post(f"/cards/{card['id']}/comments", json={"content": "Second"})
  assert second.status_code == 201, second.text

  listed = await other_client.get(f"/cards/{card['id']}/comments")
  assert [(c["content"], c["authorName"]) for c in listed.json()["comments"]] == [("First!", "Olivia"), ("Second", "Max")]

  # the board owner is still not the author
  denied = await client.delete(f"/comments/{second.json()['comment']['id']}")
  assert denied.status_code == 403, denied.text
  own = await other_client.delete(f"/comments/{second.json()['comment']['id']}")
  assert own.status_code == 200, own.text
  missing = await other_client.delete(f"/comments/{second.json()['comment']['id']}")
  assert missing.status_code == 404, missing.text


@pytest.mark.anyio
async def test_attachment_upload_download_delete(client: AsyncClient) -> None:
  await register(client, "owner@example.com", name="Olivia")
  _, card = await _card(client)

  up = await client.post(
    f"/cards/{card['id']}/attachments",
    files={"file": ("notes.txt", b"hello kanban", "text/plain")},
  )
  assert up.status_code == 201, up.text
  att = up.json()["attachment"]
  assert att["originalName"] == "notes.txt"
  assert att["sizeBytes"] == len(b"hello kanban")
  assert att["filename"].endswith(".txt")
  assert os.path.exists(storage.upload_path(att["filename"]))

  listed = await client.get(f"/cards/{card['id']}/attachments")
  assert [(a["id"], a["uploaderName"]) for a in listed.json()["attachments"]] == [(att["id"], "Olivia")]

  dl = await client.get(att["url"])
  assert dl.status_code == 200, dl.text
  assert dl.content == b"hello kanban"

  gone = await client.delete(f"/attachments/{att['id']}")
  assert gone.status_code == 200, gone.text
  assert not os.path.exists(storage.upload_path(att["filename"]))
  assert (await client.get(att["url"])).status_code == 404


@pytest.mark.anyio
async def test_attachment_limits_and_missing_file(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  _, card = await _card(client)

  no_file = await client.post(f"/cards/{card['id']}/attachments", data={"note": "x"})
  assert no_file.status_code == 400, no_file.text

  orig = settings.max_attachment_bytes
  settings.max_attachment_bytes = 10
  try:
    r = await client.post(
      f"/cards/{card['id']}/attachments",
      files={"file": ("big.txt", b"a" * 11, "text/plain")},
    )
    assert r.status_code == 413, r.text
  finally:
    settings.max_attachment_bytes = orig


@pytest.mark.anyio
async def test_delete_tolerates_missing_file_and_card_delete_cleans_up(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  _, card = await _card(client)

  a1 = (await client.post(f"/cards/{card['id']}/attachments", files={"file": ("a.bin", b"1", "application/octet-stream")})).json()["attachment"]
  a2 = (await client.post(f"/cards/{card['id']}/attachments", files={"file": ("b.bin", b"2", "application/octet-stream")})).json()["attachment"]
  os.remove(storage.upload_path(a1["filename"]))

  res = await client.delete(f"/attachments/{a1['id']}")
  assert res.status_code == 200, res.text

  await client.post(f"/cards/{card['id']}/comments", json={"content": "bye"})
  deleted = await client.delete(f"/cards/{card['id']}")
  assert deleted.status_code == 200, deleted.text
  assert not os.path.exists(storage.upload_path(a2["filename"]))
  assert (await client.get(f"/cards/{card['id']}")).status_code == 404
  assert (await client.get(f"/attachments/{a2['id']}")).status_code == 404
