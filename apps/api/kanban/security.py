from __future__ import annotations

import base64
import hashlib
import json
from datetime import timedelta
from typing import Any

from cryptography.fernet import Fernet, InvalidToken
from passlib.context import CryptContext

from kanban.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

AUTH_COOKIE_NAME = "auth_token"


def token_ttl() -> timedelta:
  return timedelta(days=max(1, int(settings.token_ttl_days)))


def hash_password(password: str) -> str:
  if not password:
    raise ValueError("password must not be empty")
  return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
  if not password or not password_hash:
    return False
  try:
    return pwd_context.verify(password, password_hash)
  except ValueError:
    # unknown or malformed digest
    return False


def _fernet() -> Fernet:
  key = settings.app_secret
  # accept a ready Fernet key or derive one from arbitrary secret text
  try:
    return Fernet(key.encode("utf-8"))
  except ValueError:
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def issue_token(claims: dict[str, Any]) -> str:
  """Sign ``claims`` into an opaque token string; age is checked on read."""
  body = json.dumps(claims, separators=(",", ":"), sort_keys=True).encode("utf-8")
  return _fernet().encrypt(body).decode("utf-8")


def read_token(token: str | None) -> dict[str, Any] | None:
  """
  Returns the claims of a valid token, otherwise None.

  Tampered, malformed and expired tokens all come back as None; this never raises.
  """
  if not token:
    return None
  try:
    raw = _fernet().decrypt(token.encode("utf-8"), ttl=int(token_ttl().total_seconds()))
  except (InvalidToken, TypeError, ValueError):
    return None
  try:
    claims = json.loads(raw.decode("utf-8"))
  except ValueError:
    return None
  if not isinstance(claims, dict) or not claims.get("userId"):
    return None
  return claims


def normalize_email(email: str | None) -> str:
  return (email or "").strip().lower()
