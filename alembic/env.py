# isort: skip_file
# ruff: noqa: E402
"""
Alembic environment for the pocketminder tables.

The URL comes from pocketminder.config (DATABASE_URL, .env aware), so the CLI
and the app always migrate the same database.
"""

from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlmodel import SQLModel

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from pocketminder.config import get_settings
import pocketminder.models  # noqa: F401  # tables for autogenerate

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata
database_url = get_settings().database_url
config.set_main_option("sqlalchemy.url", database_url)

COMPARE = {"compare_type": True, "compare_server_default": True}


def run_migrations_offline() -> None:
    """Emit SQL for `alembic upgrade --sql` without connecting."""
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **COMPARE,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section) or {},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        # batch mode: SQLite cannot ALTER most column properties in place
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
            **COMPARE,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
