# migrations/env.py
from logging.config import fileConfig
from pathlib import Path
import sys

from sqlalchemy import engine_from_config
from sqlalchemy import pool

from alembic import context

# Project root on sys.path so utils.* imports work from any cwd.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from utils.env import get_env_str
from utils.redaction import redact_database_url

alembic_config = context.config

if alembic_config.config_file_name is not None:
    fileConfig(alembic_config.config_file_name)


def _resolve_database_url() -> str:
    """
    DATABASE_URL from the environment, else sqlalchemy.url from alembic.ini.

    config.py is not imported: its stage safety rails need far more than a
    database URL.
    """
    url = get_env_str("DATABASE_URL") or (alembic_config.get_main_option("sqlalchemy.url") or "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is not set and sqlalchemy.url is empty; cannot run migrations.")

    # Hosted Postgres often hands out postgres://, which SQLAlchemy rejects
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    if not url.startswith("postgresql://"):
        raise RuntimeError(f"Only Postgres is supported for migrations. Got: {redact_database_url(url)}")
    return url


alembic_config.set_main_option("sqlalchemy.url", _resolve_database_url())

# Schema is hand-written in versions/ (raw SQL at runtime, no ORM models)
target_metadata = None


def run_migrations_offline() -> None:
    context.configure(
        url=alembic_config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        alembic_config.get_section(alembic_config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            transaction_per_migration=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
