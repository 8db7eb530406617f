from __future__ import annotations

import logging
import os

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban import storage
from kanban.access import attachment_access, card_access
from kanban.audit import write_audit
from kanban.config import settings
from kanban.deps import get_current_user, get_db
from kanban.models import Attachment, User
from kanban.schemas import AttachmentOut
from kanban.serializers import ok

logger = logging.getLogger(__name__)

router = APIRouter(tags=["attachments"])


def _attachment_out(a: Attachment, uploader: User | None = None) -> AttachmentOut:
  return AttachmentOut(
    id=a.id,
    cardId=a.card_id,
    uploaderId=a.uploader_id,
    uploaderName=uploader.name if uploader else None,
    filename=a.filename,
    originalName=a.original_name,
    mime=a.mime,
    sizeBytes=a.size_bytes,
    url=f"/attachments/{a.id}",
    createdAt=a.created_at,
  )


@router.get("/cards/{card_id}/attachments")
async def list_attachments(card_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await card_access(db, card_id, user)
  res = await db.execute(
    select(Attachment, User)
    .join(User, User.id == Attachment.uploader_id)
    .where(Attachment.card_id == card_id)
    .order_by(Attachment.created_at.desc())
  )
  return ok(attachments=[_attachment_out(a, u) for a, u in res.all()])


@router.post("/cards/{card_id}/attachments", status_code=status.HTTP_201_CREATED)
async def upload_attachment(
  card_id: str,
  file: UploadFile | None = File(default=None),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  acc = await card_access(db, card_id, user)
  if file is None:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")

  limit = int(settings.max_attachment_bytes)
  data = await file.read(limit + 1)
  if len(data) > limit:
    raise HTTPException(status_code=413, detail="Attachment too large")

  original_name = os.path.basename(file.filename or "") or "upload"
  stored = storage.store(data, original_name)
  a = Attachment(
    card_id=card_id,
    uploader_id=user.id,
    filename=stored,
    original_name=original_name,
    size_bytes=len(data),
    mime=file.content_type or "application/octet-stream",
  )
  db.add(a)
  await db.flush()
  await write_audit(
    db,
    event_type="attachment.added",
    entity_type="Attachment",
    entity_id=a.id,
    board_id=acc.board_id,
    actor_id=user.id,
    payload={"filename": original_name, "sizeBytes": len(data)},
  )
  await db.commit()
  return ok(attachment=_attachment_out(a, user))


@router.get("/attachments/{attachment_id}")
async def download_attachment(
  attachment_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> FileResponse:
  acc = await attachment_access(db, attachment_id, user)
  a = acc.attachment
  path = storage.upload_path(a.filename)
  if not os.path.exists(path):
    logger.warning("Attachment %s has no file on disk: %s", a.id, a.filename)
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attachment file not found")
  return FileResponse(path=path, media_type=a.mime, filename=a.original_name)


@router.delete("/attachments/{attachment_id}")
async def delete_attachment(
  attachment_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)
) -> dict:
  acc = await attachment_access(db, attachment_id, user)
  filename = acc.attachment.filename
  await db.execute(delete(Attachment).where(Attachment.id == attachment_id))
  await write_audit(
    db,
    event_type="attachment.deleted",
    entity_type="Attachment",
    entity_id=attachment_id,
    board_id=acc.board_id,
    actor_id=user.id,
    payload={"filename": acc.attachment.original_name},
  )
  await db.commit()
  storage.remove(filename)
  return ok(message="Attachment deleted")
