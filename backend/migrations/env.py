"""
backend/migrations/env.py — Alembic environment for the ledger_records table.

The database URL comes from the same config classes the app uses, so
DATABASE_URL / TEST_DATABASE_URL in .env apply here too. FLASK_ENV picks
the class; TEST_RUN=1 forces the testing one.

Run from the project root:  alembic -c backend/alembic.ini upgrade head
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

# backend.config loads the .env files on import.
from backend.app.extensions import db
from backend.app.models import ledger_record  # noqa: F401
from backend.config import config_by_name

target_metadata = db.metadata


def _database_url() -> str:
    env_name = "testing" if os.getenv("TEST_RUN") else os.getenv("FLASK_ENV", "development")
    config_class = config_by_name.get(env_name, config_by_name["development"])
    url = config_class.SQLALCHEMY_DATABASE_URI
    if not url:
        raise RuntimeError(f"No database URL configured for {env_name!r}.")
    return url


config = context.config
config.set_main_option("sqlalchemy.url", _database_url())

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _configure(**kwargs) -> None:
    context.configure(target_metadata=target_metadata, compare_type=True, **kwargs)


# SQLite cannot ALTER most constraints in place; batch mode copies the table.

def run_migrations_offline() -> None:
    url = config.get_main_option("sqlalchemy.url")
    _configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=url.startswith("sqlite"),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        _configure(
            connection=connection,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
