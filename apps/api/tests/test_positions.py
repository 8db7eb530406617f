from __future__ import annotations

import asyncio

import pytest
from httpx import AsyncClient

from kanban.positions import Shift, shift_for_move

from conftest import column_titles, create_board, create_card, register


def test_shift_for_move_later_and_earlier() -> None:
  assert shift_for_move(1, 1) is None
  assert shift_for_move(0, 2) == Shift(lo=1, hi=2, delta=-1)
  assert shift_for_move(3, 1) == Shift(lo=1, hi=2, delta=1)


def _dense(cards: list[tuple[str, int]]) -> bool:
  return [p for _, p in cards] == list(range(len(cards)))


async def _board_with_cards(client: AsyncClient, layout: dict[str, list[str]]) -> tuple[str, dict[str, str], dict[str, str]]:
  board = await create_board(client)
  cols = {c["name"]: c["id"] for c in board["columns"]}
  cards: dict[str, str] = {}
  for col_name, titles in layout.items():
    for t in titles:
      cards[t] = (await create_card(client, cols[col_name], t))["id"]
  return board["board"]["id"], cols, cards


@pytest.mark.anyio
async def test_positions_stay_dense_through_moves_and_deletes(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  bid, cols, cards = await _board_with_cards(client, {"To Do": ["A", "B", "C", "D"], "Done": ["E"]})

  steps = [
    ("move", "D", "To Do", 0),
    ("move", "A", "Done", 1),
    ("delete", "B", None, None),
    ("move", "E", "To Do", 2),
    ("move", "C", "In Progress", 0),
    ("delete", "D", None, None),
  ]
  for op, title, col, pos in steps:
    if op == "move":
      res = await client.post(f"/cards/{cards[title]}/move", json={"columnId": cols[col], "position": pos})
    else:
      res = await client.delete(f"/cards/{cards[title]}")
    assert res.status_code == 200, res.text
    for col_cards in (await column_titles(client, bid)).values():
      assert _dense(col_cards), col_cards

  assert await column_titles(client, bid) == {
    "To Do": [("E", 0)],
    "In Progress": [("C", 0)],
    "Done": [("A", 0)],
  }


@pytest.mark.anyio
async def test_same_slot_move_changes_nothing(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  bid, cols, cards = await _board_with_cards(client, {"To Do": ["X", "Y", "Z"]})
  before = await column_titles(client, bid)

  res = await client.post(f"/cards/{cards['Y']}/move", json={"columnId": cols["To Do"], "position": 1})
  assert res.status_code == 200, res.text
  assert await column_titles(client, bid) == before


@pytest.mark.anyio
async def test_move_across_and_back_restores_order(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  bid, cols, cards = await _board_with_cards(client, {"To Do": ["X", "Y", "Z"], "Done": ["P", "Q"]})
  before = await column_titles(client, bid)

  res = await client.post(f"/cards/{cards['Y']}/move", json={"columnId": cols["Done"], "position": 2})
  assert res.status_code == 200, res.text
  res = await client.post(f"/cards/{cards['Y']}/move", json={"columnId": cols["To Do"], "position": 1})
  assert res.status_code == 200, res.text
  assert await column_titles(client, bid) == before


@pytest.mark.anyio
async def test_append_after_delete_never_reuses_taken_slot(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  bid, cols, cards = await _board_with_cards(client, {"To Do": ["A", "B", "C"]})

  res = await client.delete(f"/cards/{cards['A']}")
  assert res.status_code == 200, res.text
  new = await create_card(client, cols["To Do"], "N")
  assert new["position"] == 2
  assert (await column_titles(client, bid))["To Do"] == [("B", 0), ("C", 1), ("N", 2)]


@pytest.mark.anyio
async def test_out_of_range_positions_are_rejected(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  bid, cols, cards = await _board_with_cards(client, {"To Do": ["X", "Y"], "Done": ["P"]})
  before = await column_titles(client, bid)

  within = await client.post(f"/cards/{cards['X']}/move", json={"columnId": cols["To Do"], "position": 2})
  assert within.status_code == 400, within.text
  across = await client.post(f"/cards/{cards['X']}/move", json={"columnId": cols["Done"], "position": 5})
  assert across.status_code == 400, across.text
  negative = await client.post(f"/columns/{cols['Done']}/move", json={"position": -1})
  assert negative.status_code == 400, negative.text
  assert negative.json()["success"] is False

  assert await column_titles(client, bid) == before


@pytest.mark.anyio
async def test_column_delete_and_create_keep_columns_dense(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  board = await create_board(client)
  bid = board["board"]["id"]
  cols = {c["name"]: c["id"] for c in board["columns"]}
  await create_card(client, cols["In Progress"], "doomed")

  res = await client.delete(f"/columns/{cols['In Progress']}")
  assert res.status_code == 200, res.text
  created = await client.post(f"/boards/{bid}/columns", json={"name": "Review"})
  assert created.status_code == 201, created.text
  assert created.json()["column"]["position"] == 2

  moved = await client.post(f"/columns/{created.json()['column']['id']}/move", json={"position": 1})
  assert moved.status_code == 200, moved.text
  assert [(c["name"], c["position"]) for c in moved.json()["columns"]] == [("To Do", 0), ("Review", 1), ("Done", 2)]

  titles = await column_titles(client, bid)
  assert "In Progress" not in titles
  assert all(t != "doomed" for cards in titles.values() for t, _ in cards)


@pytest.mark.anyio
async def test_concurrent_appends_to_empty_column_get_distinct_slots(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  bid, cols, _ = await _board_with_cards(client, {})

  results = await asyncio.gather(
    *(client.post(f"/columns/{cols['Done']}/cards", json={"title": f"card {i}"}) for i in range(4))
  )
  assert [r.status_code for r in results] == [201] * 4, [r.text for r in results]
  assert sorted(r.json()["card"]["position"] for r in results) == [0, 1, 2, 3]
  assert _dense((await column_titles(client, bid))["Done"])


@pytest.mark.anyio
async def test_concurrent_moves_and_deletes_keep_positions_dense(client: AsyncClient) -> None:
  await register(client, "owner@example.com")
  bid, cols, cards = await _board_with_cards(client, {"To Do": ["A", "B", "C", "D", "E"], "Done": ["P", "Q"]})

  results = await asyncio.gather(
    client.post(f"/cards/{cards['A']}/move", json={"columnId": cols["To Do"], "position": 1}),
    client.post(f"/cards/{cards['E']}/move", json={"columnId": cols["Done"], "position": 0}),
    client.post(f"/cards/{cards['P']}/move", json={"columnId": cols["To Do"], "position": 0}),
    client.delete(f"/cards/{cards['C']}"),
    client.post(f"/columns/{cols['To Do']}/cards", json={"title": "N"}),
  )
  assert [r.status_code for r in results] == [200, 200, 200, 200, 201], [r.text for r in results]

  titles = await column_titles(client, bid)
  for col_cards in titles.values():
    assert _dense(col_cards), col_cards
  assert sorted(t for col_cards in titles.values() for t, _ in col_cards) == ["A", "B", "D", "E", "N", "P", "Q"]
