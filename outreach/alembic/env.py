"""
Alembic migration environment.
The database URL comes from Settings (DATABASE_URL / .env); models provide metadata for autogenerate.
"""
import sys
from pathlib import Path

# alembic/ lives in outreach/; the project root (parent of outreach/) must be importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from outreach.app.core.config import settings
from outreach.app.db.base import Base

import outreach.app.models  # noqa: F401

config = context.config
config.set_main_option("sqlalchemy.url", settings.database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
# SQLite cannot ALTER most constraints in place
_batch = settings.database_url.startswith("sqlite")


def run_migrations_offline() -> None:
    context.configure(
        url=settings.database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=_batch,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(settings.database_url, poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=_batch,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
