from __future__ import annotations

from typing import Any

from kanban.models import Board, Card, Column, User
from kanban.schemas import BoardOut, CardOut, ColumnOut, UserOut


def ok(**data: Any) -> dict[str, Any]:
  return {"success": True, **data}


def user_out(u: User) -> UserOut:
  return UserOut(id=u.id, email=u.email, name=u.name, avatarUrl=u.avatar_url)


def board_out(b: Board, role: str) -> BoardOut:
  return BoardOut(
    id=b.id,
    name=b.name,
    description=b.description or "",
    color=b.color,
    ownerId=b.owner_id,
    myRole=role,
    createdAt=b.created_at,
    updatedAt=b.updated_at,
  )


def card_out(k: Card) -> CardOut:
  return CardOut(
    id=k.id,
    columnId=k.column_id,
    title=k.title,
    description=k.description or "",
    priority=k.priority,
    dueDate=k.due_date,
    tags=list(k.tags or []),
    color=k.color,
    assigneeId=k.assignee_id,
    createdBy=k.created_by,
    position=k.position,
    createdAt=k.created_at,
    updatedAt=k.updated_at,
  )


def column_out(c: Column, cards: list[Card] | None = None) -> ColumnOut:
  return ColumnOut(
    id=c.id,
    boardId=c.board_id,
    name=c.name,
    position=c.position,
    cards=[card_out(k) for k in (cards or [])],
  )
