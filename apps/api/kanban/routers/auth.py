from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.audit import write_audit
from kanban.config import settings
from kanban.deps import client_ip, get_current_user, get_db
from kanban.models import User
from kanban.rate_limit import limiter
from kanban.schemas import LoginIn, RegisterIn
from kanban.security import AUTH_COOKIE_NAME, hash_password, issue_token, normalize_email, token_ttl, verify_password
from kanban.serializers import ok, user_out

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _rate_limit_or_429(*, key: str, limit: int, window_seconds: int) -> None:
  allowed, retry_after = limiter.hit(key, limit=limit, window_seconds=window_seconds)
  if allowed:
    return
  raise HTTPException(
    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
    detail="Too many requests",
    headers={"Retry-After": str(retry_after)},
  )


def _limit_auth(kind: str, request: Request, email_key: str) -> None:
  ip = client_ip(request)
  _rate_limit_or_429(key=f"auth:{kind}:ip:{ip}", limit=int(settings.rate_limit_auth_ip_per_minute), window_seconds=60)
  if email_key:
    _rate_limit_or_429(
      key=f"auth:{kind}:email:{email_key}", limit=int(settings.rate_limit_auth_email_per_minute), window_seconds=60
    )


def _set_auth_cookie(response: Response, u: User) -> None:
  token = issue_token({"userId": u.id, "email": u.email, "name": u.name})
  response.set_cookie(
    key=AUTH_COOKIE_NAME,
    value=token,
    httponly=True,
    secure=settings.cookie_secure,
    samesite="lax",
    domain=settings.cookie_domain or None,
    max_age=int(token_ttl().total_seconds()),
    path="/",
  )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterIn, request: Request, response: Response, db: AsyncSession = Depends(get_db)) -> dict:
  email = normalize_email(payload.email)
  name = payload.name.strip()
  _limit_auth("register", request, email)
  if not email or not payload.password or not name:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="email, password and name are required")
  if "@" not in email:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="email is invalid")
  if len(payload.password) < int(settings.password_min_length):
    raise HTTPException(
      status_code=status.HTTP_400_BAD_REQUEST,
      detail=f"Password must be at least {settings.password_min_length} characters",
    )

  exists = await db.execute(select(User.id).where(User.email == email))
  if exists.scalar_one_or_none():
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="This email is already registered")

  u = User(email=email, name=name, password_hash=hash_password(payload.password))
  db.add(u)
  try:
    await db.flush()
  except IntegrityError:
    # lost a race with a concurrent registration of the same email
    await db.rollback()
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="This email is already registered")
  await write_audit(db, event_type="auth.registered", entity_type="User", entity_id=u.id, actor_id=u.id, payload={"email": email})
  await db.commit()
  logger.info("user registered: %s", u.id)

  _set_auth_cookie(response, u)
  return ok(message="Account created", user=user_out(u))


@router.post("/login")
async def login(payload: LoginIn, request: Request, response: Response, db: AsyncSession = Depends(get_db)) -> dict:
  email = normalize_email(payload.email)
  _limit_auth("login", request, email)
  if not email or not payload.password:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="email and password are required")

  res = await db.execute(select(User).where(User.email == email))
  u = res.scalar_one_or_none()
  if not u or not verify_password(payload.password, u.password_hash):
    await write_audit(db, event_type="auth.login.failed", entity_type="Auth", entity_id=None, payload={"email": email, "ip": client_ip(request)})
    await db.commit()
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

  await write_audit(db, event_type="auth.login.success", entity_type="User", entity_id=u.id, actor_id=u.id, payload={})
  await db.commit()
  _set_auth_cookie(response, u)
  return ok(message="Logged in", user=user_out(u))


@router.post("/logout")
async def logout(response: Response) -> dict:
  response.delete_cookie(key=AUTH_COOKIE_NAME, path="/", domain=settings.cookie_domain or None)
  return ok(message="Logged out")


@router.get("/me")
async def me(user: User = Depends(get_current_user)) -> dict:
  return ok(user=user_out(user))
