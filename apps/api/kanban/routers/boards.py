from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban import positions, storage
from kanban.access import OWNER, board_access
from kanban.audit import write_audit
from kanban.config import settings
from kanban.deps import get_current_user, get_db
from kanban.models import Attachment, Board, BoardMember, Card, Column, Comment, Invitation, User
from kanban.schemas import BoardCreateIn, BoardUpdateIn, MemberOut
from kanban.serializers import board_out, column_out, ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/boards", tags=["boards"])


async def delete_cards_everything(db: AsyncSession, *, card_ids) -> list[str]:
  """Delete cards plus their comments and attachments; returns stored file names to unlink after commit."""
  fres = await db.execute(select(Attachment.filename).where(Attachment.card_id.in_(card_ids)))
  filenames = [f for f in fres.scalars().all() if f]
  await db.execute(delete(Attachment).where(Attachment.card_id.in_(card_ids)))
  await db.execute(delete(Comment).where(Comment.card_id.in_(card_ids)))
  await db.execute(delete(Card).where(Card.id.in_(card_ids)))
  return filenames


async def _delete_board_everything(db: AsyncSession, *, board_id: str) -> list[str]:
  card_ids = select(Card.id).join(Column, Column.id == Card.column_id).where(Column.board_id == board_id)
  filenames = await delete_cards_everything(db, card_ids=card_ids)
  await db.execute(delete(Column).where(Column.board_id == board_id))
  await db.execute(delete(Invitation).where(Invitation.board_id == board_id))
  await db.execute(delete(BoardMember).where(BoardMember.board_id == board_id))
  await db.execute(delete(Board).where(Board.id == board_id))
  return filenames


async def list_members_for(db: AsyncSession, board_id: str) -> list[MemberOut]:
  res = await db.execute(
    select(BoardMember, User)
    .join(User, User.id == BoardMember.user_id)
    .where(BoardMember.board_id == board_id)
    .order_by(BoardMember.created_at.asc())
  )
  return [
    MemberOut(userId=u.id, email=u.email, name=u.name, role=m.role, joinedAt=m.created_at) for m, u in res.all()
  ]


@router.get("")
async def list_boards(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  res = await db.execute(
    select(Board, BoardMember.role)
    .join(BoardMember, BoardMember.board_id == Board.id)
    .where(BoardMember.user_id == user.id)
    .order_by(Board.created_at.desc())
  )
  return ok(boards=[board_out(b, role) for b, role in res.all()])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_board(payload: BoardCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  name = payload.name.strip()
  if not name:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Board name is required")

  b = Board(name=name, description=(payload.description or "").strip(), color=payload.color, owner_id=user.id)
  db.add(b)
  await db.flush()
  db.add(BoardMember(board_id=b.id, user_id=user.id, role=OWNER))

  columns: list[Column] = []
  for idx, col_name in enumerate(settings.default_column_names()):
    c = Column(board_id=b.id, name=col_name, position=idx)
    db.add(c)
    columns.append(c)
  await db.flush()

  await write_audit(
    db, event_type="board.created", entity_type="Board", entity_id=b.id, board_id=b.id, actor_id=user.id, payload={"name": b.name}
  )
  await db.commit()
  return ok(board=board_out(b, OWNER), columns=[column_out(c) for c in columns])


@router.get("/{board_id}")
async def get_board(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  acc = await board_access(db, board_id, user)
  cres = await db.execute(select(Column).where(Column.board_id == board_id).order_by(Column.position.asc()))
  columns = cres.scalars().all()
  kres = await db.execute(
    select(Card)
    .join(Column, Column.id == Card.column_id)
    .where(Column.board_id == board_id)
    .order_by(Card.position.asc())
  )
  by_column: dict[str, list[Card]] = {}
  for k in kres.scalars().all():
    by_column.setdefault(k.column_id, []).append(k)
  members = await list_members_for(db, board_id)
  return ok(
    board=board_out(acc.board, acc.membership.role),
    columns=[column_out(c, by_column.get(c.id, [])) for c in columns],
    members=members,
  )


@router.patch("/{board_id}")
async def update_board(
  board_id: str,
  payload: BoardUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  acc = await board_access(db, board_id, user, owner=True, action="update the board")
  b = acc.board
  if payload.name is not None:
    name = payload.name.strip()
    if not name:
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Board name is required")
    b.name = name
  if payload.description is not None:
    b.description = payload.description.strip()
  if "color" in payload.model_fields_set:
    b.color = payload.color
  await write_audit(
    db, event_type="board.updated", entity_type="Board", entity_id=b.id, board_id=b.id, actor_id=user.id, payload={"name": b.name}
  )
  await db.commit()
  return ok(board=board_out(b, acc.membership.role))


@router.delete("/{board_id}")
async def delete_board(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await board_access(db, board_id, user, owner=True, action="delete the board")
  await positions.lock_container(db, positions.COLUMNS, board_id)
  filenames = await _delete_board_everything(db, board_id=board_id)
  await write_audit(db, event_type="board.deleted", entity_type="Board", entity_id=board_id, board_id=board_id, actor_id=user.id, payload={})
  await db.commit()
  for f in filenames:
    storage.remove(f)
  logger.info("board deleted: %s by %s", board_id, user.id)
  return ok(message="Board deleted")
