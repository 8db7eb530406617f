from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban import positions, storage
from kanban.access import board_access, column_access
from kanban.audit import write_audit
from kanban.deps import get_current_user, get_db
from kanban.models import Card, Column, User
from kanban.routers.boards import delete_cards_everything
from kanban.schemas import ColumnCreateIn, ColumnMoveIn, ColumnUpdateIn
from kanban.serializers import column_out, ok

router = APIRouter(tags=["columns"])


def _column_name(raw: str) -> str:
  name = raw.strip()
  if not name:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Column name is required")
  return name


async def board_columns(db: AsyncSession, board_id: str) -> list[Column]:
  res = await db.execute(
    select(Column).where(Column.board_id == board_id).order_by(Column.position.asc()).execution_options(populate_existing=True)
  )
  return list(res.scalars().all())


@router.post("/boards/{board_id}/columns", status_code=status.HTTP_201_CREATED)
async def create_column(
  board_id: str,
  payload: ColumnCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  await board_access(db, board_id, user)
  name = _column_name(payload.name)
  pos = await positions.append_position(db, positions.COLUMNS, board_id)
  c = Column(board_id=board_id, name=name, position=pos)
  db.add(c)
  await db.flush()
  await write_audit(
    db, event_type="column.created", entity_type="Column", entity_id=c.id, board_id=board_id, actor_id=user.id, payload={"name": name}
  )
  await db.commit()
  return ok(column=column_out(c))


@router.patch("/columns/{column_id}")
async def update_column(
  column_id: str,
  payload: ColumnUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  acc = await column_access(db, column_id, user)
  c = acc.column
  c.name = _column_name(payload.name)
  await write_audit(
    db, event_type="column.updated", entity_type="Column", entity_id=c.id, board_id=acc.board_id, actor_id=user.id, payload={"name": c.name}
  )
  await db.commit()
  return ok(column=column_out(c))


@router.delete("/columns/{column_id}")
async def delete_column(column_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  acc = await column_access(db, column_id, user, owner=True, action="delete columns")
  c = acc.column
  removed_position = await positions.locked_position(db, positions.COLUMNS, c)
  await positions.lock_container(db, positions.CARDS, c.id)
  filenames = await delete_cards_everything(db, card_ids=select(Card.id).where(Card.column_id == c.id))
  await db.execute(delete(Column).where(Column.id == c.id))
  await positions.close_gap(db, positions.COLUMNS, acc.board_id, removed_position)
  await write_audit(
    db, event_type="column.deleted", entity_type="Column", entity_id=column_id, board_id=acc.board_id, actor_id=user.id, payload={"name": c.name}
  )
  await db.commit()
  for f in filenames:
    storage.remove(f)
  return ok(message="Column deleted")


@router.post("/columns/{column_id}/move")
async def move_column(
  column_id: str,
  payload: ColumnMoveIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  acc = await column_access(db, column_id, user, owner=True, action="reorder columns")
  c = acc.column
  from_position = c.position
  moved = await positions.move_within(db, positions.COLUMNS, c, payload.position)
  if moved:
    await write_audit(
      db,
      event_type="column.moved",
      entity_type="Column",
      entity_id=c.id,
      board_id=acc.board_id,
      actor_id=user.id,
      payload={"from": from_position, "to": payload.position},
    )
  await db.commit()
  return ok(columns=[column_out(x) for x in await board_columns(db, acc.board_id)])
