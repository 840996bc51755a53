"""
Alembic environment for the entitlement tables.

The database URL comes from app.db.session (DATABASE_URL, postgres://
normalized), unless app.main.run_migrations passed one in explicitly.
"""
from logging.config import fileConfig

import sys
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv
load_dotenv(project_root / ".env")

from app.db.base import Base
from app.db.session import SQLALCHEMY_DATABASE_URL
import app.models  # noqa: F401  registers profiles, subscriptions, trial_eligibility, call_campaigns

config = context.config
target_metadata = Base.metadata
MANAGED_TABLES = frozenset(target_metadata.tables)

if config.config_file_name is not None:
    # Migrations also run inside app startup; keep the app's loggers alive
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def database_url() -> str:
    # run_migrations sets the option explicitly; the CLI falls back to the app's URL
    return config.get_main_option("sqlalchemy.url") or SQLALCHEMY_DATABASE_URL


def include_object(obj, name, type_, reflected, compare_to):
    # The database is shared with Supabase (auth.*, storage.*); only diff our own tables
    if type_ == "table":
        return name in MANAGED_TABLES
    return True


def run_migrations_offline() -> None:
    context.configure(
        url=database_url(),
        target_metadata=target_metadata,
        include_object=include_object,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section) or {}
    section["sqlalchemy.url"] = database_url()
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            include_object=include_object,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
