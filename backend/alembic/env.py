from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from filedrop import models  # noqa: F401  registers the tables
from filedrop.core.config import settings
from filedrop.core.database import Base
from filedrop.scripts.db_migrate import sync_database_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# SQLite cannot ALTER most columns in place; batch mode rebuilds the table
CONFIGURE_OPTS = {
    "target_metadata": Base.metadata,
    "compare_type": True,
    "render_as_batch": True,
}


def run_offline(url: str) -> None:
    context.configure(url=url, literal_binds=True, dialect_opts={"paramstyle": "named"}, **CONFIGURE_OPTS)
    with context.begin_transaction():
        context.run_migrations()


def run_online(url: str) -> None:
    engine = create_engine(url, poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, **CONFIGURE_OPTS)
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


url = sync_database_url(settings.DATABASE_URL)
if context.is_offline_mode():
    run_offline(url)
else:
    run_online(url)
