from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.access import MEMBER, board_access
from kanban.audit import write_audit
from kanban.deps import get_current_user, get_db
from kanban.models import Board, BoardMember, Invitation, User
from kanban.schemas import InvitationCreateIn, InvitationOut
from kanban.security import normalize_email
from kanban.serializers import ok

logger = logging.getLogger(__name__)

router = APIRouter(tags=["invitations"])

PENDING = "pending"


def _invitation_out(inv: Invitation, *, board: Board | None = None, inviter: User | None = None) -> InvitationOut:
  return InvitationOut(
    id=inv.id,
    boardId=inv.board_id,
    boardName=board.name if board else None,
    boardColor=board.color if board else None,
    inviterId=inv.inviter_id,
    inviterName=inviter.name if inviter else None,
    inviteeEmail=inv.invitee_email,
    status=inv.status,
    createdAt=inv.created_at,
  )


async def _pending_for_caller(db: AsyncSession, invitation_id: str, user: User) -> Invitation:
  # only the addressee ever sees the invitation; anything else looks missing
  res = await db.execute(
    select(Invitation).where(
      Invitation.id == invitation_id,
      Invitation.invitee_email == normalize_email(user.email),
      Invitation.status == PENDING,
    )
  )
  inv = res.scalar_one_or_none()
  if not inv:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")
  return inv


@router.post("/boards/{board_id}/invitations", status_code=status.HTTP_201_CREATED)
async def create_invitation(
  board_id: str,
  payload: InvitationCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  acc = await board_access(db, board_id, user, owner=True, action="invite members")
  email = normalize_email(payload.email)
  if not email:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="email is required")
  if email == normalize_email(user.email):
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You cannot invite yourself")

  ures = await db.execute(select(User).where(User.email == email))
  invitee = ures.scalar_one_or_none()
  if not invitee:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

  mres = await db.execute(
    select(BoardMember.id).where(BoardMember.board_id == board_id, BoardMember.user_id == invitee.id)
  )
  if mres.scalar_one_or_none():
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User is already a member of this board")

  pres = await db.execute(
    select(Invitation.id).where(
      Invitation.board_id == board_id, Invitation.invitee_email == email, Invitation.status == PENDING
    )
  )
  if pres.scalar_one_or_none():
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="An invitation is already pending for this email")

  inv = Invitation(board_id=board_id, inviter_id=user.id, invitee_email=email, status=PENDING)
  db.add(inv)
  await db.flush()
  await write_audit(
    db,
    event_type="invitation.created",
    entity_type="Invitation",
    entity_id=inv.id,
    board_id=board_id,
    actor_id=user.id,
    payload={"email": email},
  )
  await db.commit()
  return ok(invitation=_invitation_out(inv, board=acc.board, inviter=user))


@router.get("/boards/{board_id}/invitations")
async def list_board_invitations(
  board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict:
  acc = await board_access(db, board_id, user, owner=True, action="view invitations")
  res = await db.execute(
    select(Invitation, User)
    .join(User, User.id == Invitation.inviter_id)
    .where(Invitation.board_id == board_id, Invitation.status == PENDING)
    .order_by(Invitation.created_at.desc())
  )
  return ok(invitations=[_invitation_out(inv, board=acc.board, inviter=inviter) for inv, inviter in res.all()])


@router.delete("/invitations/{invitation_id}")
async def cancel_invitation(
  invitation_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict:
  res = await db.execute(select(Invitation).where(Invitation.id == invitation_id))
  inv = res.scalar_one_or_none()
  if not inv:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")
  await board_access(db, inv.board_id, user, owner=True, action="cancel invitations")
  if inv.status != PENDING:
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Invitation is no longer pending")

  inv.status = "canceled"
  await write_audit(
    db,
    event_type="invitation.canceled",
    entity_type="Invitation",
    entity_id=inv.id,
    board_id=inv.board_id,
    actor_id=user.id,
    payload={"email": inv.invitee_email},
  )
  await db.commit()
  return ok(message="Invitation canceled")


@router.get("/invitations")
async def my_invitations(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  res = await db.execute(
    select(Invitation, Board, User)
    .join(Board, Board.id == Invitation.board_id)
    .join(User, User.id == Invitation.inviter_id)
    .where(Invitation.invitee_email == normalize_email(user.email), Invitation.status == PENDING)
    .order_by(Invitation.created_at.desc())
  )
  return ok(invitations=[_invitation_out(inv, board=b, inviter=inviter) for inv, b, inviter in res.all()])


@router.post("/invitations/{invitation_id}/accept")
async def accept_invitation(
  invitation_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict:
  inv = await _pending_for_caller(db, invitation_id, user)
  inv.status = "accepted"

  mres = await db.execute(
    select(BoardMember).where(BoardMember.board_id == inv.board_id, BoardMember.user_id == user.id)
  )
  if mres.scalar_one_or_none() is None:
    db.add(BoardMember(board_id=inv.board_id, user_id=user.id, role=MEMBER))
  try:
    await db.flush()
  except IntegrityError:
    # a concurrent accept already created the membership
    await db.rollback()
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Invitation was already handled")

  await write_audit(
    db,
    event_type="invitation.accepted",
    entity_type="Invitation",
    entity_id=inv.id,
    board_id=inv.board_id,
    actor_id=user.id,
    payload={},
  )
  await db.commit()
  logger.info("invitation accepted: %s by %s", inv.id, user.id)
  return ok(message="Invitation accepted", boardId=inv.board_id)


@router.post("/invitations/{invitation_id}/reject")
async def reject_invitation(
  invitation_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict:
  inv = await _pending_for_caller(db, invitation_id, user)
  inv.status = "rejected"
  await write_audit(
    db,
    event_type="invitation.rejected",
    entity_type="Invitation",
    entity_id=inv.id,
    board_id=inv.board_id,
    actor_id=user.id,
    payload={},
  )
  await db.commit()
  return ok(message="Invitation rejected")
