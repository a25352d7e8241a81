"""Alembic environment for the membership schema.

``alembic.ini`` puts ``src/`` on the path. The URL comes from ``ALEMBIC_URL``
when set, otherwise from the application settings, so migrations and the
running service always agree on the database.
"""
from __future__ import annotations

import os
from logging.config import fileConfig
from typing import Any

from alembic import context
from sqlalchemy import engine_from_config, pool

from commune.core.settings import settings
from commune.db.session import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

config.set_main_option(
    "sqlalchemy.url",
    os.getenv("ALEMBIC_URL") or settings.database_url_sync,
)

target_metadata = Base.metadata


def include_object(obj, name, type_, reflected, compare_to):
    """Leave Alembic's bookkeeping table out of autogenerate."""
    return not (type_ == "table" and name == "alembic_version")


def _configure(url: str, **kwargs: Any) -> None:
    # SQLite cannot ALTER constraints in place; batch mode recreates tables.
    context.configure(
        target_metadata=target_metadata,
        include_object=include_object,
        compare_type=True,
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL for the partial indexes and constraints without a connection."""
    url = config.get_main_option("sqlalchemy.url")
    _configure(url, url=url, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a live connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        _configure(str(connection.engine.url), connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
