"""Alembic environment for PracticeHub."""

from __future__ import annotations

import sys
from pathlib import Path

from alembic import context
import sqlalchemy as sa
from sqlalchemy import pool

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from practicehub.db.config import get_database_settings  # noqa: E402
from practicehub.db.models import Base  # noqa: E402

config = context.config
settings = get_database_settings()
# An explicit URL on the config (tests, one-off upgrades) wins over the environment.
url = config.get_main_option("sqlalchemy.url") or settings.url
config.set_main_option("sqlalchemy.url", url)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""

    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""

    connect_args = {}
    if url == settings.url:
        connect_args = dict(settings.engine_options().get("connect_args", {}))
    engine = sa.create_engine(url, connect_args=connect_args, poolclass=pool.NullPool, future=True)

    with engine.begin() as connection:
        if connection.dialect.name == "postgresql":
            connection.execute(sa.text("SET TIME ZONE 'UTC'"))
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            transaction_per_migration=True,
        )
        context.run_migrations()


def run_migrations() -> None:
    if context.is_offline_mode():
        run_migrations_offline()
    else:
        run_migrations_online()


run_migrations()
