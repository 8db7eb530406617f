from __future__ import annotations

from typing import AsyncIterator

from fastapi import Cookie, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.db import SessionLocal
from kanban.models import User
from kanban.security import AUTH_COOKIE_NAME, read_token


async def get_db() -> AsyncIterator[AsyncSession]:
  async with SessionLocal() as session:
    yield session


def _bearer_token(request: Request) -> str | None:
  auth = request.headers.get("authorization")
  if auth and auth.lower().startswith("bearer "):
    return auth.split(" ", 1)[1].strip() or None
  return None


async def get_current_user(
  request: Request,
  db: AsyncSession = Depends(get_db),
  auth_token: str | None = Cookie(default=None, alias=AUTH_COOKIE_NAME),
) -> User:
  token = _bearer_token(request) or auth_token
  if not token:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

  claims = read_token(token)
  if claims is None:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

  res = await db.execute(select(User).where(User.id == str(claims["userId"])))
  u = res.scalar_one_or_none()
  if not u:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
  return u


def client_ip(request: Request) -> str:
  return request.client.host if request.client else "unknown"
