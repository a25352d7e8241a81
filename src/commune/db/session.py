"""Engine and session factory for the membership store.

SQLite connections run with foreign keys switched on so membership and
ownership references are enforced the same way PostgreSQL enforces them.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from commune.core.settings import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import commune.models  # noqa: E402,F401


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str | None = None, **kwargs: Any) -> Engine:
    """Create an engine for ``url`` (defaults to the configured database).

    SQLite engines are made shareable across threads for the HTTP layer's
    threadpool and get foreign key enforcement on every connection.
    """
    url = url or settings.database_url_sync
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)

    new_engine = create_engine(url, echo=settings.sql_debug, **kwargs)
    if is_sqlite:
        event.listen(new_engine, "connect", _enable_sqlite_foreign_keys)
    logger.debug("Created engine for %s", new_engine.url.render_as_string(hide_password=True))
    return new_engine


engine = build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind: Engine | None = None) -> None:
    """Create all tables, including the partial unique indexes."""
    Base.metadata.create_all(bind=bind or engine)


def drop_tables(bind: Engine | None = None) -> None:
    """Drop all tables."""
    Base.metadata.drop_all(bind=bind or engine)
