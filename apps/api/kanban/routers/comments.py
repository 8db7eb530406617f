from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.access import card_access, comment_access
from kanban.audit import write_audit
from kanban.deps import get_current_user, get_db
from kanban.models import Comment, User
from kanban.schemas import CommentCreateIn, CommentOut
from kanban.serializers import ok

router = APIRouter(tags=["comments"])


def _comment_out(c: Comment, author: User) -> CommentOut:
  return CommentOut(
    id=c.id,
    cardId=c.card_id,
    authorId=c.author_id,
    authorName=author.name,
    authorEmail=author.email,
    content=c.content,
    createdAt=c.created_at,
  )


@router.get("/cards/{card_id}/comments")
async def list_comments(card_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await card_access(db, card_id, user)
  res = await db.execute(
    select(Comment, User)
    .join(User, User.id == Comment.author_id)
    .where(Comment.card_id == card_id)
    .order_by(Comment.created_at.asc())
  )
  return ok(comments=[_comment_out(c, u) for c, u in res.all()])


@router.post("/cards/{card_id}/comments", status_code=status.HTTP_201_CREATED)
async def create_comment(
  card_id: str,
  payload: CommentCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  acc = await card_access(db, card_id, user)
  content = payload.content.strip()
  if not content:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Comment content is required")
  c = Comment(card_id=card_id, author_id=user.id, content=content)
  db.add(c)
  await db.flush()
  await write_audit(
    db,
    event_type="comment.created",
    entity_type="Comment",
    entity_id=c.id,
    board_id=acc.board_id,
    actor_id=user.id,
    payload={"cardId": card_id},
  )
  await db.commit()
  return ok(comment=_comment_out(c, user))


@router.delete("/comments/{comment_id}")
async def delete_comment(comment_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  acc = await comment_access(db, comment_id, user, author_only=True)
  await db.execute(delete(Comment).where(Comment.id == comment_id))
  await write_audit(
    db,
    event_type="comment.deleted",
    entity_type="Comment",
    entity_id=comment_id,
    board_id=acc.board_id,
    actor_id=user.id,
    payload={"cardId": acc.card.id},
  )
  await db.commit()
  return ok(message="Comment deleted")
