# backend/alembic/env.py
from logging.config import fileConfig
import os
import sys

from sqlalchemy import engine_from_config, pool
from alembic import context

# env.py lives at backend/alembic/env.py; the angostura package sits one level up
BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

config = context.config

if config.config_file_name:
    fileConfig(config.config_file_name)


def migration_url() -> str | None:
    """
    DATABASE_URL wins over alembic.ini. The app talks to Postgres through
    asyncpg; migrations run on psycopg2, so the driver is swapped.
    """
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        return None
    url = url.replace("+asyncpg", "+psycopg2")
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg2://", 1)
    return url


resolved_url = migration_url()
if resolved_url:
    config.set_main_option("sqlalchemy.url", resolved_url)

from angostura.models import Base  # noqa: E402

target_metadata = Base.metadata


def run_migrations_offline():
    """Emit the migration SQL without a live connection."""
    if not resolved_url:
        raise RuntimeError("No database URL for Alembic. Set DATABASE_URL or edit alembic.ini.")

    context.configure(
        url=resolved_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
