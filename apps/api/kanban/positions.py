"""
Dense ordering for cards within a column and columns within a board.

Positions in a container are always 0..n-1. Every operation here runs inside
the caller's transaction and starts by locking the container row itself
(the column for cards, the board for columns) with ``FOR UPDATE``. That lock
exists even when the container is empty, so concurrent appends, moves and
deletes against one container queue behind each other, and each one reads
sibling positions only after the previous writer committed. Siblings are then
shifted with one bounded UPDATE per container and the moved row is written.
Nothing is committed here; the request handler commits or rolls back as a
whole.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.models import Board, Card, Column


class PositionError(ValueError):
  pass


class ConcurrentMoveError(RuntimeError):
  pass


@dataclass(frozen=True)
class Sequence:
  model: Any
  parent_attr: str
  container: Any
  label: str

  @property
  def parent(self):
    return getattr(self.model, self.parent_attr)


CARDS = Sequence(Card, "column_id", Column, "Card")
COLUMNS = Sequence(Column, "board_id", Board, "Column")


@dataclass(frozen=True)
class Shift:
  lo: int
  hi: int
  delta: int


def shift_for_move(current: int, target: int) -> Shift | None:
  """
  Sibling range (inclusive) and delta for moving an item from ``current`` to ``target``
  inside the same container. None when the item stays put.
  """
  if target == current:
    return None
  if target > current:
    # later: (current, target] slide left
    return Shift(lo=current + 1, hi=target, delta=-1)
  # earlier: [target, current) slide right
  return Shift(lo=target, hi=current - 1, delta=1)


async def lock_container(db: AsyncSession, seq: Sequence, parent_id: str) -> None:
  """Take the container row lock that every reindex of ``parent_id`` serializes on."""
  res = await db.execute(select(seq.container.id).where(seq.container.id == parent_id).with_for_update())
  if res.scalar_one_or_none() is None:
    raise ConcurrentMoveError(f"{seq.label} container was removed by another request; reload and retry")


async def _siblings(db: AsyncSession, seq: Sequence, parent_id: str) -> dict[str, int]:
  res = await db.execute(
    select(seq.model.id, seq.model.position)
    .where(seq.parent == parent_id)
    .order_by(seq.model.position.asc())
    .with_for_update()
  )
  return {row.id: row.position for row in res.all()}


def _current_position(seq: Sequence, item: Any, siblings: dict[str, int]) -> int:
  if item.id not in siblings:
    raise ConcurrentMoveError(f"{seq.label} was changed by another request; reload and retry")
  return siblings[item.id]


async def append_position(db: AsyncSession, seq: Sequence, parent_id: str) -> int:
  """max + 1 rather than count, so a container with a gap never reuses a taken slot."""
  await lock_container(db, seq, parent_id)
  siblings = await _siblings(db, seq, parent_id)
  if not siblings:
    return 0
  return max(siblings.values()) + 1


async def locked_position(db: AsyncSession, seq: Sequence, item: Any) -> int:
  """
  Lock ``item``'s container and return the item's committed position.

  Delete paths call this before removing the row so ``close_gap`` shifts
  around the slot the item really holds, not the one read before the lock.
  """
  parent_id = getattr(item, seq.parent_attr)
  await lock_container(db, seq, parent_id)
  return _current_position(seq, item, await _siblings(db, seq, parent_id))


async def close_gap(db: AsyncSession, seq: Sequence, parent_id: str, removed_position: int) -> None:
  await lock_container(db, seq, parent_id)
  await db.execute(
    update(seq.model)
    .where(seq.parent == parent_id, seq.model.position > removed_position)
    .values(position=seq.model.position - 1)
    .execution_options(synchronize_session="fetch")
  )


async def move_within(db: AsyncSession, seq: Sequence, item: Any, target_index: int) -> bool:
  """
  Move ``item`` to ``target_index`` in its current container.

  Returns False for a same-slot move (no writes). Raises PositionError when
  ``target_index`` is outside [0, n-1].
  """
  parent_id = getattr(item, seq.parent_attr)
  await lock_container(db, seq, parent_id)
  siblings = await _siblings(db, seq, parent_id)
  current = _current_position(seq, item, siblings)
  n = len(siblings)
  if not 0 <= target_index < n:
    raise PositionError(f"position must be between 0 and {n - 1}")

  shift = shift_for_move(current, target_index)
  if shift is None:
    return False
  await db.execute(
    update(seq.model)
    .where(
      seq.parent == parent_id,
      seq.model.id != item.id,
      seq.model.position >= shift.lo,
      seq.model.position <= shift.hi,
    )
    .values(position=seq.model.position + shift.delta)
    .execution_options(synchronize_session="fetch")
  )
  item.position = target_index
  await db.flush()
  return True


async def move_across(db: AsyncSession, seq: Sequence, item: Any, dest_parent_id: str, dest_index: int) -> bool:
  """
  Move ``item`` into another container at ``dest_index`` (0..m, m = append).

  A destination equal to the source is a same-container move.
  """
  source_id = getattr(item, seq.parent_attr)
  if dest_parent_id == source_id:
    return await move_within(db, seq, item, dest_index)

  # fixed lock order so two opposite moves cannot deadlock
  for parent_id in sorted([source_id, dest_parent_id]):
    await lock_container(db, seq, parent_id)
  current = _current_position(seq, item, await _siblings(db, seq, source_id))
  m = len(await _siblings(db, seq, dest_parent_id))
  if not 0 <= dest_index <= m:
    raise PositionError(f"position must be between 0 and {m}")

  await db.execute(
    update(seq.model)
    .where(seq.parent == source_id, seq.model.id != item.id, seq.model.position > current)
    .values(position=seq.model.position - 1)
    .execution_options(synchronize_session="fetch")
  )
  await db.execute(
    update(seq.model)
    .where(seq.parent == dest_parent_id, seq.model.position >= dest_index)
    .values(position=seq.model.position + 1)
    .execution_options(synchronize_session="fetch")
  )
  setattr(item, seq.parent_attr, dest_parent_id)
  item.position = dest_index
  await db.flush()
  return True
