from __future__ import annotations

import pytest
from httpx import AsyncClient

from conftest import add_member, create_board, create_card, register


async def _setup(owner: AsyncClient, member: AsyncClient, stranger: AsyncClient) -> dict:
  await register(owner, "owner@example.com", name="Olivia")
  await register(member, "member@example.com", name="Max")
  await register(stranger, "stranger@example.com", name="Sam")
  board = await create_board(owner)
  bid = board["board"]["id"]
  await add_member(owner, member, bid, "member@example.com")
  cols = {c["name"]: c["id"] for c in board["columns"]}
  card = await create_card(owner, cols["To Do"], "Shared card")
  return {"board_id": bid, "cols": cols, "card": card}


@pytest.mark.anyio
async def test_anonymous_requests_are_unauthenticated(client: AsyncClient) -> None:
  res = await client.get("/boards")
  assert res.status_code == 401, res.text
  assert res.json() == {"success": False, "message": "Not authenticated"}

  bad = await client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
  assert bad.status_code == 401, bad.text


@pytest.mark.anyio
async def test_owner_only_operations_refuse_members(
  client: AsyncClient, other_client: AsyncClient, third_client: AsyncClient
) -> None:
  ctx = await _setup(client, other_client, third_client)
  bid, cols = ctx["board_id"], ctx["cols"]
  owner_id = (await client.get("/auth/me")).json()["user"]["id"]
  invited = await client.post(f"/boards/{bid}/invitations", json={"email": "stranger@example.com"})
  assert invited.status_code == 201, invited.text
  inv_id = invited.json()["invitation"]["id"]

  denied = [
    await other_client.patch(f"/boards/{bid}", json={"name": "Hijacked"}),
    await other_client.delete(f"/boards/{bid}"),
    await other_client.post(f"/boards/{bid}/invitations", json={"email": "stranger@example.com"}),
    await other_client.get(f"/boards/{bid}/invitations"),
    await other_client.delete(f"/columns/{cols['Done']}"),
    await other_client.post(f"/columns/{cols['Done']}/move", json={"position": 0}),
    await other_client.delete(f"/boards/{bid}/members/{owner_id}"),
    await other_client.delete(f"/invitations/{inv_id}"),
  ]
  for res in denied:
    assert res.status_code == 403, res.text
    assert res.json()["message"].startswith("Only the board owner")

  allowed = await client.patch(f"/boards/{bid}", json={"name": "Renamed", "description": "  Q3  "})
  assert allowed.status_code == 200, allowed.text
  assert allowed.json()["board"]["name"] == "Renamed"
  assert allowed.json()["board"]["description"] == "Q3"


@pytest.mark.anyio
async def test_members_can_work_with_columns_and_cards(
  client: AsyncClient, other_client: AsyncClient, third_client: AsyncClient
) -> None:
  ctx = await _setup(client, other_client, third_client)
  bid, cols, card = ctx["board_id"], ctx["cols"], ctx["card"]

  col = await other_client.post(f"/boards/{bid}/columns", json={"name": "QA"})
  assert col.status_code == 201, col.text
  renamed = await other_client.patch(f"/columns/{col.json()['column']['id']}", json={"name": "Testing"})
  assert renamed.status_code == 200, renamed.text
  assert renamed.json()["column"]["name"] == "Testing"

  moved = await other_client.post(f"/cards/{card['id']}/move", json={"columnId": cols["Done"], "position": 0})
  assert moved.status_code == 200, moved.text
  mine = await create_card(other_client, cols["Done"], "Member card")
  assert mine["createdBy"] != card["createdBy"]

  boards = await other_client.get("/boards")
  assert boards.status_code == 200, boards.text
  assert [(b["id"], b["myRole"]) for b in boards.json()["boards"]] == [(bid, "member")]


@pytest.mark.anyio
async def test_non_members_get_not_found_everywhere(
  client: AsyncClient, other_client: AsyncClient, third_client: AsyncClient
) -> None:
  ctx = await _setup(client, other_client, third_client)
  bid, cols, card = ctx["board_id"], ctx["cols"], ctx["card"]

  attempts = [
    await third_client.get(f"/boards/{bid}"),
    await third_client.delete(f"/boards/{bid}"),
    await third_client.get(f"/boards/{bid}/members"),
    await third_client.post(f"/boards/{bid}/columns", json={"name": "X"}),
    await third_client.patch(f"/columns/{cols['To Do']}", json={"name": "X"}),
    await third_client.post(f"/columns/{cols['To Do']}/cards", json={"title": "X"}),
    await third_client.get(f"/cards/{card['id']}"),
    await third_client.patch(f"/cards/{card['id']}", json={"title": "X"}),
    await third_client.get(f"/cards/{card['id']}/comments"),
    await third_client.get(f"/cards/{card['id']}/attachments"),
    await third_client.get("/boards/00000000-0000-0000-0000-000000000000"),
  ]
  for res in attempts:
    assert res.status_code == 404, res.text
    assert res.json()["success"] is False

  listed = await third_client.get("/boards")
  assert listed.json()["boards"] == []


@pytest.mark.anyio
async def test_cannot_move_card_into_foreign_or_other_board(
  client: AsyncClient, other_client: AsyncClient, third_client: AsyncClient
) -> None:
  ctx = await _setup(client, other_client, third_client)
  card = ctx["card"]

  foreign = await create_board(third_client, "Stranger board")
  foreign_col = foreign["columns"][0]["id"]
  res = await client.post(f"/cards/{card['id']}/move", json={"columnId": foreign_col, "position": 0})
  assert res.status_code == 404, res.text

  second = await create_board(client, "Second board")
  res = await client.post(f"/cards/{card['id']}/move", json={"columnId": second["columns"][0]["id"], "position": 0})
  assert res.status_code == 400, res.text


@pytest.mark.anyio
async def test_remove_member_unassigns_their_cards(
  client: AsyncClient, other_client: AsyncClient, third_client: AsyncClient
) -> None:
  ctx = await _setup(client, other_client, third_client)
  bid, card = ctx["board_id"], ctx["card"]
  member_id = (await other_client.get("/auth/me")).json()["user"]["id"]
  owner_id = (await client.get("/auth/me")).json()["user"]["id"]

  assigned = await client.patch(f"/cards/{card['id']}", json={"assigneeId": member_id})
  assert assigned.status_code == 200, assigned.text
  assert assigned.json()["card"]["assigneeId"] == member_id

  members = await client.get(f"/boards/{bid}/members")
  assert {m["role"] for m in members.json()["members"]} == {"owner", "member"}

  owner_out = await client.delete(f"/boards/{bid}/members/{owner_id}")
  assert owner_out.status_code == 400, owner_out.text

  res = await client.delete(f"/boards/{bid}/members/{member_id}")
  assert res.status_code == 200, res.text

  after = await client.get(f"/cards/{card['id']}")
  assert after.json()["card"]["assigneeId"] is None
  gone = await other_client.get(f"/boards/{bid}")
  assert gone.status_code == 404, gone.text
