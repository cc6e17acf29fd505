"""Alembic environment for the Maintainer Firewall schema.

The database URL is taken, in order, from ``alembic -x database_url=...``,
the ``MAINTAINER_FIREWALL_DATABASE_URL`` environment variable, and the
application settings.
"""

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Revisions are hand-written with op.*; there is no ORM metadata to diff against
target_metadata = None


def resolve_database_url() -> str:
    """Pick the database URL and make it usable by a sync SQLAlchemy engine."""
    url = context.get_x_argument(as_dictionary=True).get("database_url")
    if not url:
        url = os.environ.get("MAINTAINER_FIREWALL_DATABASE_URL")
    if not url:
        from maintainer_firewall.config import settings

        url = settings.database_url

    # The app talks asyncpg; migrations run on psycopg2
    for prefix in ("postgresql+asyncpg://", "postgres://"):
        if url.startswith(prefix):
            url = "postgresql://" + url[len(prefix):]
    return url


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout without connecting."""
    context.configure(
        url=resolve_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a live connection."""
    engine = create_engine(resolve_database_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
