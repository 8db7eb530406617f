from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban import positions, storage
from kanban.access import card_access, column_access
from kanban.audit import write_audit
from kanban.deps import get_current_user, get_db
from kanban.models import BoardMember, Card, Column, User
from kanban.routers.boards import delete_cards_everything
from kanban.schemas import CardCreateIn, CardMoveIn, CardUpdateIn, ColumnOut
from kanban.serializers import card_out, column_out, ok

logger = logging.getLogger(__name__)

router = APIRouter(tags=["cards"])


async def _ensure_assignee(db: AsyncSession, board_id: str, assignee_id: str | None) -> None:
  if not assignee_id:
    return
  res = await db.execute(
    select(BoardMember.id).where(BoardMember.board_id == board_id, BoardMember.user_id == assignee_id)
  )
  if res.scalar_one_or_none() is None:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Assignee must be a member of this board")


async def _column_with_cards(db: AsyncSession, c: Column) -> ColumnOut:
  res = await db.execute(
    select(Card).where(Card.column_id == c.id).order_by(Card.position.asc()).execution_options(populate_existing=True)
  )
  return column_out(c, list(res.scalars().all()))


@router.post("/columns/{column_id}/cards", status_code=status.HTTP_201_CREATED)
async def create_card(
  column_id: str,
  payload: CardCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  acc = await column_access(db, column_id, user)
  title = payload.title.strip()
  if not title:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Card title is required")
  await _ensure_assignee(db, acc.board_id, payload.assigneeId)

  pos = await positions.append_position(db, positions.CARDS, column_id)
  k = Card(
    column_id=column_id,
    title=title,
    description=(payload.description or "").strip(),
    priority=payload.priority,
    due_date=payload.dueDate,
    tags=payload.tags or [],
    color=payload.color,
    assignee_id=payload.assigneeId,
    created_by=user.id,
    position=pos,
  )
  db.add(k)
  await db.flush()
  await write_audit(
    db, event_type="card.created", entity_type="Card", entity_id=k.id, board_id=acc.board_id, actor_id=user.id, payload={"title": title}
  )
  await db.commit()
  return ok(card=card_out(k))


@router.get("/cards/{card_id}")
async def get_card(card_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  acc = await card_access(db, card_id, user)
  return ok(card=card_out(acc.card))


@router.patch("/cards/{card_id}")
async def update_card(
  card_id: str,
  payload: CardUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  acc = await card_access(db, card_id, user)
  k = acc.card
  fields = payload.model_fields_set
  changed: list[str] = []

  if payload.title is not None:
    title = payload.title.strip()
    if not title:
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Card title is required")
    k.title = title
    changed.append("title")
  if payload.description is not None:
    k.description = payload.description.strip()
    changed.append("description")
  if payload.priority is not None:
    k.priority = payload.priority
    changed.append("priority")
  if "dueDate" in fields:
    k.due_date = payload.dueDate
    changed.append("dueDate")
  if payload.tags is not None:
    k.tags = payload.tags
    changed.append("tags")
  if "color" in fields:
    k.color = payload.color
    changed.append("color")
  if "assigneeId" in fields:
    await _ensure_assignee(db, acc.board_id, payload.assigneeId)
    k.assignee_id = payload.assigneeId
    changed.append("assigneeId")

  if changed:
    await write_audit(
      db, event_type="card.updated", entity_type="Card", entity_id=k.id, board_id=acc.board_id, actor_id=user.id, payload={"fields": changed}
    )
  await db.commit()
  await db.refresh(k)
  return ok(card=card_out(k))


@router.delete("/cards/{card_id}")
async def delete_card(card_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  acc = await card_access(db, card_id, user)
  k = acc.card
  removed_position = await positions.locked_position(db, positions.CARDS, k)
  column_id, title = k.column_id, k.title
  filenames = await delete_cards_everything(db, card_ids=[k.id])
  await positions.close_gap(db, positions.CARDS, column_id, removed_position)
  await write_audit(
    db, event_type="card.deleted", entity_type="Card", entity_id=card_id, board_id=acc.board_id, actor_id=user.id, payload={"title": title}
  )
  await db.commit()
  for f in filenames:
    storage.remove(f)
  return ok(message="Card deleted")


@router.post("/cards/{card_id}/move")
async def move_card(
  card_id: str,
  payload: CardMoveIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  acc = await card_access(db, card_id, user)
  dest = await column_access(db, payload.columnId, user)
  if dest.board_id != acc.board_id:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cards can only be moved within the same board")

  k = acc.card
  source = acc.column
  from_column, from_position = k.column_id, k.position
  moved = await positions.move_across(db, positions.CARDS, k, dest.column.id, payload.position)
  if moved:
    await write_audit(
      db,
      event_type="card.moved",
      entity_type="Card",
      entity_id=k.id,
      board_id=acc.board_id,
      actor_id=user.id,
      payload={
        "fromColumnId": from_column,
        "fromPosition": from_position,
        "toColumnId": dest.column.id,
        "toPosition": payload.position,
      },
    )
    logger.debug("card moved: %s %s:%s -> %s:%s", k.id, from_column, from_position, dest.column.id, payload.position)
  await db.commit()

  columns = [await _column_with_cards(db, source)]
  if dest.column.id != source.id:
    columns.append(await _column_with_cards(db, dest.column))
  return ok(card=card_out(k), columns=columns)
