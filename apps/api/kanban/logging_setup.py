from __future__ import annotations

import logging
import sys

from kanban.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_configured = False


def setup_logging() -> None:
  global _configured
  if _configured:
    return
  # Level via env (DEBUG/INFO/WARNING/ERROR), default INFO
  level_name = (settings.log_level or "INFO").upper()
  level = getattr(logging, level_name, logging.INFO)

  root = logging.getLogger()
  root.setLevel(level)

  ch = logging.StreamHandler(sys.stdout)
  ch.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATEFMT))
  ch.setLevel(level)
  root.addHandler(ch)

  if settings.log_sql:
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

  _configured = True
  logging.getLogger(__name__).info("Logging initialized at %s", level_name)
