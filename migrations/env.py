from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context

from app.config import get_settings
from app.models import Base

target_metadata = Base.metadata  # autogenerate from ORM

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Settings derive the psycopg URL from an asyncpg DATABASE_URL when SYNC_DATABASE_URL is unset
sync_url = get_settings().SYNC_DATABASE_URL
if not sync_url:
    raise RuntimeError("Alembic needs a sync driver: set SYNC_DATABASE_URL or a postgresql+asyncpg DATABASE_URL.")
config.set_main_option("sqlalchemy.url", sync_url)


def run_migrations_offline():
    context.configure(
        url=sync_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
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
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
