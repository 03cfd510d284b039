"""
Alembic Migration Environment for the Extension Upgrader
========================================================

Alembic owns the upgrader's own schema (the shared
extensions_migrations_history table). Extension schemas are migrated by
common.migrations at bootstrap, not here.

This module configures Alembic to:
1. Load database URL from the upgrader config (not hardcoded)
2. Support async SQLAlchemy operations
3. Import the ORM models for autogeneration

Usage:
    alembic upgrade head
    alembic downgrade -1
"""

import asyncio
import json
import os
from logging.config import fileConfig
from pathlib import Path

import yaml
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

from common.database import normalize_database_url
from common.models import Base

# Alembic Config object
config = context.config

# Interpret the config file for Python logging (if present)
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def load_database_url_from_config() -> str:
    """
    Resolve the database URL.

    Tries (in order):
    1. UPGRADER_DATABASE_URL environment variable
    2. config.json / config.yaml (database_url field)
    3. Default SQLite (upgrader.db)
    """
    if 'UPGRADER_DATABASE_URL' in os.environ:
        return normalize_database_url(os.environ['UPGRADER_DATABASE_URL'])

    for config_path in (Path('config.json'), Path('config.yaml'), Path('config.yml')):
        if not config_path.exists():
            continue
        with open(config_path, 'r', encoding='utf-8') as f:
            if config_path.suffix == '.json':
                config_data = json.load(f)
            else:
                config_data = yaml.safe_load(f) or {}
        if 'database_url' in config_data:
            return normalize_database_url(config_data['database_url'])

    return 'sqlite+aiosqlite:///upgrader.db'


database_url = load_database_url_from_config()
config.set_main_option('sqlalchemy.url', database_url)


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (emit SQL without a DBAPI)."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=True,  # Required for SQLite ALTER TABLE support
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Run migrations in 'online' mode with an async engine."""
    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = database_url

    connectable = async_engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
