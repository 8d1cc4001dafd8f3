from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from taskloom.config import settings

engine = create_async_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


if engine.dialect.name == "sqlite":
  # The sqlite3 driver defers BEGIN until the first write, which breaks
  # SAVEPOINT scoping. Hand transaction control to SQLAlchemy instead.

  @event.listens_for(engine.sync_engine, "connect")
  def _sqlite_connect(dbapi_connection, _record) -> None:
    dbapi_connection.isolation_level = None

  @event.listens_for(engine.sync_engine, "begin")
  def _sqlite_begin(conn) -> None:
    conn.exec_driver_sql("BEGIN")
