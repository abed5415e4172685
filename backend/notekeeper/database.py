"""
NoteKeeper Backend — Database Engine & Session Management
==========================================================

What:  Async SQLAlchemy engine/session factories and the declarative Base.
How:   `build_engine()` creates an async engine for the configured URL;
       `build_session_factory()` wraps it. RelationalStorage owns both, so
       nothing here is created at import time and the file backend never
       opens a database connection.
Who:   Used by `storage.sql.RelationalStorage`.

Connection Pooling:
    PostgreSQL/MySQL URLs get pool_size / max_overflow / pre_ping from
    settings and connections are recycled hourly. SQLite URLs use
    SQLAlchemy's default pool for the dialect, which rejects those options.
"""

import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from notekeeper.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    The shared metadata is what `RelationalStorage.initialize()` passes to
    `create_all`, so every model module must be imported before that call.
    """
    pass


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE clauses unless this is set per connection.
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine for `settings.database_url`.

    Echoes SQL when the log level is DEBUG.
    """
    url = settings.database_url
    is_sqlite = url.startswith("sqlite")

    engine_kwargs = {"echo": settings.log_level == "DEBUG"}
    if not is_sqlite:
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )

    engine = create_async_engine(url, **engine_kwargs)

    if is_sqlite:
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    logger.info("Database engine created for %s", engine.url.render_as_string(hide_password=True))
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Sessions keep loaded attributes after commit (expire_on_commit=False):
    repositories convert rows to domain entities after the transaction ends.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
