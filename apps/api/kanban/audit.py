from __future__ import annotations

import logging
from typing import Any

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.models import AuditEvent

logger = logging.getLogger(__name__)


async def write_audit(
  db: AsyncSession,
  *,
  event_type: str,
  entity_type: str,
  entity_id: str | None,
  board_id: str | None = None,
  actor_id: str | None = None,
  payload: dict[str, Any] | None = None,
) -> AuditEvent:
  """Stage an audit row in the caller's transaction; it lands or vanishes with the mutation it records."""
  ev = AuditEvent(
    event_type=event_type,
    entity_type=entity_type,
    entity_id=entity_id,
    board_id=board_id,
    actor_id=actor_id,
    payload=jsonable_encoder(payload or {}),
  )
  db.add(ev)
  logger.debug("audit %s %s=%s board=%s actor=%s", event_type, entity_type, entity_id, board_id, actor_id)
  return ev
