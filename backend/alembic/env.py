"""Alembic environment for the profile database."""

from __future__ import annotations

import os

from alembic import context
from sqlalchemy import engine_from_config, pool

from rutherford.db import models  # noqa: F401  # registers the mappers
from rutherford.db.base import Base

config = context.config
target_metadata = Base.metadata

if not config.get_main_option("sqlalchemy.url") and os.getenv("RUTHERFORD_DATABASE_URL"):
    config.set_main_option("sqlalchemy.url", os.environ["RUTHERFORD_DATABASE_URL"])


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
