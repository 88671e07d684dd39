from logging.config import fileConfig

from sqlalchemy import engine_from_config
from sqlalchemy import pool
from alembic import context

from sessionauth.config import settings
from sessionauth.db.base import Base
from sessionauth.models import User, UserSession  # noqa: F401 - registers users and sessions tables

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)
# Migrations run on a sync driver: asyncpg -> psycopg2, aiosqlite -> pysqlite
config.set_main_option("sqlalchemy.url", settings.sync_database_url)


def run_migrations() -> None:
    """Migrate the users/sessions schema over a live connection (no --sql mode)."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=Base.metadata,
            # SQLite cannot ALTER constraints in place; batch mode recreates the table
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    raise RuntimeError("Offline (--sql) migrations are not supported; run against a database")
run_migrations()
