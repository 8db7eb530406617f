from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.access import OWNER, board_access
from kanban.audit import write_audit
from kanban.deps import get_current_user, get_db
from kanban.models import BoardMember, Card, Column, User
from kanban.routers.boards import list_members_for
from kanban.serializers import ok

router = APIRouter(prefix="/boards/{board_id}/members", tags=["members"])


@router.get("")
async def list_members(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await board_access(db, board_id, user)
  return ok(members=await list_members_for(db, board_id))


@router.delete("/{member_user_id}")
async def remove_member(
  board_id: str,
  member_user_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  await board_access(db, board_id, user, owner=True, action="remove members")
  res = await db.execute(
    select(BoardMember).where(BoardMember.board_id == board_id, BoardMember.user_id == member_user_id)
  )
  m = res.scalar_one_or_none()
  if not m:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
  if m.role == OWNER:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="The board owner cannot be removed")

  await db.execute(
    update(Card)
    .where(Card.assignee_id == member_user_id, Card.column_id.in_(select(Column.id).where(Column.board_id == board_id)))
    .values(assignee_id=None)
    .execution_options(synchronize_session=False)
  )
  await db.execute(delete(BoardMember).where(BoardMember.id == m.id))
  await write_audit(
    db,
    event_type="board.member.removed",
    entity_type="BoardMember",
    entity_id=m.id,
    board_id=board_id,
    actor_id=user.id,
    payload={"userId": member_user_id},
  )
  await db.commit()
  return ok(message="Member removed")
