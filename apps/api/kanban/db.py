from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from kanban.config import settings


def _sqlite_write_lock_on_begin(engine: AsyncEngine) -> None:
  # SQLite ignores FOR UPDATE; take the database write lock at BEGIN so
  # reindexing transactions still run one at a time.
  @event.listens_for(engine.sync_engine, "connect")
  def _no_implicit_begin(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None

  @event.listens_for(engine.sync_engine, "begin")
  def _begin_immediate(conn):
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_engine(url: str) -> AsyncEngine:
  if url.startswith("sqlite"):
    engine = create_async_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
    _sqlite_write_lock_on_begin(engine)
    return engine
  return create_async_engine(url, pool_pre_ping=True)


engine = make_engine(settings.database_url)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def dispose_engine() -> None:
  await engine.dispose()
