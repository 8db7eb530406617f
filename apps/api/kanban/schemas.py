from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

Priority = Literal["low", "medium", "high", "urgent"]
Role = Literal["owner", "member"]


def _clean_tags(value: object) -> object:
  if value is None:
    return None
  if isinstance(value, list):
    out: list[str] = []
    for t in value:
      s = str(t).strip()
      if s and s not in out:
        out.append(s)
    return out
  return value


class UserOut(BaseModel):
  id: str
  email: str
  name: str
  avatarUrl: str | None = None


class RegisterIn(BaseModel):
  email: str = Field(max_length=320)
  password: str = Field(max_length=200)
  name: str = Field(max_length=120)


class LoginIn(BaseModel):
  email: str
  password: str


class BoardCreateIn(BaseModel):
  name: str = Field(max_length=200)
  description: str | None = None
  color: str | None = Field(default=None, max_length=32)


class BoardUpdateIn(BaseModel):
  name: str | None = Field(default=None, max_length=200)
  description: str | None = None
  color: str | None = Field(default=None, max_length=32)


class BoardOut(BaseModel):
  id: str
  name: str
  description: str
  color: str | None = None
  ownerId: str
  myRole: Role
  createdAt: datetime
  updatedAt: datetime


class MemberOut(BaseModel):
  userId: str
  email: str
  name: str
  role: Role
  joinedAt: datetime


class InvitationCreateIn(BaseModel):
  email: str = Field(max_length=320)


class InvitationOut(BaseModel):
  id: str
  boardId: str
  boardName: str | None = None
  boardColor: str | None = None
  inviterId: str
  inviterName: str | None = None
  inviteeEmail: str
  status: Literal["pending", "accepted", "rejected", "canceled"]
  createdAt: datetime


class ColumnCreateIn(BaseModel):
  name: str = Field(max_length=200)


class ColumnUpdateIn(BaseModel):
  name: str = Field(max_length=200)


class ColumnMoveIn(BaseModel):
  position: int


class CardOut(BaseModel):
  id: str
  columnId: str
  title: str
  description: str
  priority: Priority
  dueDate: date | None = None
  tags: list[str] = []
  color: str | None = None
  assigneeId: str | None = None
  createdBy: str
  position: int
  createdAt: datetime
  updatedAt: datetime


class ColumnOut(BaseModel):
  id: str
  boardId: str
  name: str
  position: int
  cards: list[CardOut] = []


class CardCreateIn(BaseModel):
  title: str = Field(max_length=300)
  description: str | None = None
  priority: Priority = "medium"
  dueDate: date | None = None
  tags: list[str] | None = None
  color: str | None = Field(default=None, max_length=32)
  assigneeId: str | None = None

  @field_validator("tags", mode="before")
  @classmethod
  def clean_tags(cls, value: object) -> object:
    return _clean_tags(value)


class CardUpdateIn(BaseModel):
  title: str | None = Field(default=None, max_length=300)
  description: str | None = None
  priority: Priority | None = None
  dueDate: date | None = None
  tags: list[str] | None = None
  color: str | None = Field(default=None, max_length=32)
  # explicit null unassigns; omitted leaves the assignee alone
  assigneeId: str | None = None

  @field_validator("tags", mode="before")
  @classmethod
  def clean_tags(cls, value: object) -> object:
    return _clean_tags(value)


class CardMoveIn(BaseModel):
  columnId: str
  position: int


class CommentCreateIn(BaseModel):
  content: str = Field(max_length=10000)


class CommentOut(BaseModel):
  id: str
  cardId: str
  authorId: str
  authorName: str
  authorEmail: str
  content: str
  createdAt: datetime


class AttachmentOut(BaseModel):
  id: str
  cardId: str
  uploaderId: str
  uploaderName: str | None = None
  filename: str
  originalName: str
  mime: str
  sizeBytes: int
  url: str
  createdAt: datetime
