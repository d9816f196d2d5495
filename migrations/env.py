"""Alembic environment for the Mintwatch schema.

POSTGRES_URL (from the environment or .env) takes precedence over the
sqlalchemy.url in alembic.ini. The application talks to the database with
asyncpg; migrations run synchronously through psycopg2.
"""

import os
from logging.config import fileConfig
from typing import Optional

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import create_engine, pool

SYNC_DRIVER = "postgresql+psycopg2://"
_PLAIN_SCHEMES = ("postgresql://", "postgres://")


def sync_database_url(url: str) -> str:
    """Point a plain postgres URL at the psycopg2 driver."""
    for scheme in _PLAIN_SCHEMES:
        if url.startswith(scheme):
            return SYNC_DRIVER + url[len(scheme):]
    return url


def configured_url() -> Optional[str]:
    load_dotenv()
    url = os.getenv("POSTGRES_URL")
    return sync_database_url(url) if url else None


config = context.config

url_override = configured_url()
if url_override:
    config.set_main_option("sqlalchemy.url", url_override)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=None,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a single short-lived connection."""
    engine = create_engine(config.get_main_option("sqlalchemy.url"), poolclass=pool.NullPool)

    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=None)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
