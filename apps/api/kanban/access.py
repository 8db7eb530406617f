"""
Board access checks.

Every resolver walks the resource's ownership chain down to the caller's
``BoardMember`` row in a single joined query:

  Attachment / Comment -> Card -> Column -> Board -> BoardMember

No row means the resource is missing *or* the caller is not a member; both
surface as 404 so non-members cannot learn what exists. A member lacking
the owner role on an owner-only operation gets 403.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import HTTPException, status
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.models import Attachment, Board, BoardMember, Card, Column, Comment, User

logger = logging.getLogger(__name__)

OWNER = "owner"
MEMBER = "member"


@dataclass
class BoardAccess:
  board: Board
  membership: BoardMember

  @property
  def board_id(self) -> str:
    return self.board.id


@dataclass
class ColumnAccess(BoardAccess):
  column: Column


@dataclass
class CardAccess(ColumnAccess):
  card: Card


@dataclass
class CommentAccess(CardAccess):
  comment: Comment


@dataclass
class AttachmentAccess(CardAccess):
  attachment: Attachment


def _membership_join(user: User):
  return and_(BoardMember.board_id == Board.id, BoardMember.user_id == user.id)


def _hidden(detail: str, *, user: User, entity: str, entity_id: str) -> HTTPException:
  logger.debug("access hidden: user=%s %s=%s", user.id, entity, entity_id)
  return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


def _check_owner(membership: BoardMember, *, owner: bool, action: str) -> None:
  if owner and membership.role != OWNER:
    logger.debug("access denied: user=%s board=%s action=%s", membership.user_id, membership.board_id, action)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Only the board owner can {action}")


async def board_access(
  db: AsyncSession, board_id: str, user: User, *, owner: bool = False, action: str = "do this"
) -> BoardAccess:
  res = await db.execute(
    select(Board, BoardMember).join(BoardMember, _membership_join(user)).where(Board.id == board_id)
  )
  row = res.first()
  if row is None:
    raise _hidden("Board not found", user=user, entity="board", entity_id=board_id)
  b, m = row
  _check_owner(m, owner=owner, action=action)
  return BoardAccess(board=b, membership=m)


async def column_access(
  db: AsyncSession, column_id: str, user: User, *, owner: bool = False, action: str = "do this"
) -> ColumnAccess:
  res = await db.execute(
    select(Column, Board, BoardMember)
    .join(Board, Board.id == Column.board_id)
    .join(BoardMember, _membership_join(user))
    .where(Column.id == column_id)
  )
  row = res.first()
  if row is None:
    raise _hidden("Column not found", user=user, entity="column", entity_id=column_id)
  c, b, m = row
  _check_owner(m, owner=owner, action=action)
  return ColumnAccess(board=b, membership=m, column=c)


async def card_access(db: AsyncSession, card_id: str, user: User) -> CardAccess:
  res = await db.execute(
    select(Card, Column, Board, BoardMember)
    .join(Column, Column.id == Card.column_id)
    .join(Board, Board.id == Column.board_id)
    .join(BoardMember, _membership_join(user))
    .where(Card.id == card_id)
  )
  row = res.first()
  if row is None:
    raise _hidden("Card not found", user=user, entity="card", entity_id=card_id)
  k, c, b, m = row
  return CardAccess(board=b, membership=m, column=c, card=k)


async def comment_access(db: AsyncSession, comment_id: str, user: User, *, author_only: bool = False) -> CommentAccess:
  res = await db.execute(
    select(Comment, Card, Column, Board, BoardMember)
    .join(Card, Card.id == Comment.card_id)
    .join(Column, Column.id == Card.column_id)
    .join(Board, Board.id == Column.board_id)
    .join(BoardMember, _membership_join(user))
    .where(Comment.id == comment_id)
  )
  row = res.first()
  if row is None:
    raise _hidden("Comment not found", user=user, entity="comment", entity_id=comment_id)
  cm, k, c, b, m = row
  if author_only and cm.author_id != user.id:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the author can delete this comment")
  return CommentAccess(board=b, membership=m, column=c, card=k, comment=cm)


async def attachment_access(db: AsyncSession, attachment_id: str, user: User) -> AttachmentAccess:
  res = await db.execute(
    select(Attachment, Card, Column, Board, BoardMember)
    .join(Card, Card.id == Attachment.card_id)
    .join(Column, Column.id == Card.column_id)
    .join(Board, Board.id == Column.board_id)
    .join(BoardMember, _membership_join(user))
    .where(Attachment.id == attachment_id)
  )
  row = res.first()
  if row is None:
    raise _hidden("Attachment not found", user=user, entity="attachment", entity_id=attachment_id)
  a, k, c, b, m = row
  return AttachmentAccess(board=b, membership=m, column=c, card=k, attachment=a)
