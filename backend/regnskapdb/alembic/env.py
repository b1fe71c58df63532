from __future__ import annotations

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context

# backend/ must be importable when alembic runs from the repo root.
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

import regnskapdb  # noqa: E402,F401  (imports every app's models)
from regnskapdb.database import Base, write_engine  # noqa: E402

target_metadata = Base.metadata


def _database_url() -> str:
    for candidate in (
        os.getenv("DATABASE_WRITE_URL"),
        os.getenv("DATABASE_URL"),
        config.get_main_option("sqlalchemy.url"),
    ):
        if candidate and not candidate.startswith("driver://"):
            return candidate.strip()
    raise RuntimeError("Set DATABASE_WRITE_URL or DATABASE_URL to run migrations")


if context.is_offline_mode():
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()
else:
    with write_engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()
