from __future__ import annotations

import logging
import os
import uuid

from kanban.config import settings

logger = logging.getLogger(__name__)


def upload_path(filename: str) -> str:
  return os.path.join(settings.upload_dir, filename)


def store(data: bytes, original_name: str | None) -> str:
  """Write ``data`` under the upload dir; returns the stored file name."""
  os.makedirs(settings.upload_dir, exist_ok=True)
  ext = os.path.splitext(original_name or "")[1]
  out_name = f"{uuid.uuid4().hex}{ext}"
  with open(upload_path(out_name), "wb") as f:
    f.write(data)
  return out_name


def remove(filename: str) -> bool:
  """Best-effort delete. A missing file is tolerated."""
  try:
    os.remove(upload_path(filename))
    return True
  except FileNotFoundError:
    logger.warning("Attachment file already gone: %s", filename)
    return False
  except OSError as exc:
    logger.warning("Could not delete attachment file %s: %s", filename, exc)
    return False
