from __future__ import annotations

import asyncio
import logging
import os
import secrets

from sqlalchemy import select

from kanban.config import settings
from kanban.db import SessionLocal, dispose_engine
from kanban.logging_setup import setup_logging
from kanban.models import Board, BoardMember, Card, Column, Comment, User
from kanban.security import hash_password

logger = logging.getLogger(__name__)

OWNER_EMAIL = "owner@kanban.local"
MEMBER_EMAIL = "member@kanban.local"
DEMO_BOARD = "Kanban Demo"


def _bootstrap_password(env_key: str) -> tuple[str, bool]:
  configured = (os.getenv(env_key) or "").strip()
  if configured:
    return configured, False
  return secrets.token_urlsafe(14), True


async def _ensure_user(db, email: str, name: str, env_key: str, boot_lines: list[str]) -> User:
  res = await db.execute(select(User).where(User.email == email))
  u = res.scalar_one_or_none()
  if u:
    return u
  password, generated = _bootstrap_password(env_key)
  u = User(email=email, name=name, password_hash=hash_password(password))
  db.add(u)
  boot_lines.append(f"{email}={password} (generated={str(generated).lower()})")
  return u


async def _ensure_demo_board(db, owner: User, member: User) -> None:
  bres = await db.execute(select(Board).where(Board.name == DEMO_BOARD, Board.owner_id == owner.id))
  if bres.scalar_one_or_none():
    return

  board = Board(name=DEMO_BOARD, description="A sample board to click around in.", color="#3b82f6", owner_id=owner.id)
  db.add(board)
  await db.flush()
  db.add(BoardMember(board_id=board.id, user_id=owner.id, role="owner"))
  db.add(BoardMember(board_id=board.id, user_id=member.id, role="member"))

  columns: list[Column] = []
  for idx, name in enumerate(settings.default_column_names()):
    c = Column(board_id=board.id, name=name, position=idx)
    db.add(c)
    columns.append(c)
  await db.flush()

  first, last = columns[0], columns[-1]
  samples = [
    (first, "Welcome to your board", "Drag cards between columns to track progress.", "medium", ["welcome"]),
    (first, "Invite a teammate", "Owners can invite registered users by email.", "high", ["team"]),
    (last, "Create a board", "Every board starts with the default columns.", "low", ["done"]),
  ]
  positions: dict[str, int] = {}
  for col, title, desc, priority, tags in samples:
    pos = positions.get(col.id, 0)
    positions[col.id] = pos + 1
    k = Card(
      column_id=col.id,
      title=title,
      description=desc,
      priority=priority,
      tags=tags,
      assignee_id=member.id,
      created_by=owner.id,
      position=pos,
    )
    db.add(k)
    await db.flush()
    if pos == 0 and col is first:
      db.add(Comment(card_id=k.id, author_id=owner.id, content="Cards can carry comments and attachments too."))


async def seed() -> None:
  boot_lines: list[str] = []
  async with SessionLocal() as db:
    owner = await _ensure_user(db, OWNER_EMAIL, "Owner", "SEED_OWNER_PASSWORD", boot_lines)
    member = await _ensure_user(db, MEMBER_EMAIL, "Member", "SEED_MEMBER_PASSWORD", boot_lines)
    await db.flush()

    if os.getenv("SEED_DEMO_BOARD", "").strip().lower() in ("1", "true", "yes", "y"):
      await _ensure_demo_board(db, owner, member)

    await db.commit()

  if boot_lines:
    print("Kanban seed credentials created:")
    for ln in boot_lines:
      print(f"  {ln}")
  else:
    logger.info("Seed users already present; nothing to do")


def main() -> None:
  setup_logging()

  async def _run() -> None:
    try:
      await seed()
    finally:
      await dispose_engine()

  asyncio.run(_run())


if __name__ == "__main__":
  main()
