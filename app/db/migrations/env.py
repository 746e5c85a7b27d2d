from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from app.core.config import DATABASE_URL
from app.db.session import Base
import app.models  # noqa: F401  registers every table

config = context.config

if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL is not set; cannot run studio booking migrations")

config.set_main_option("sqlalchemy.url", DATABASE_URL)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _configure(**kwargs):
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        # SQLite cannot ALTER constraints in place
        render_as_batch=DATABASE_URL.startswith("sqlite"),
        **kwargs,
    )


# ===============================================================
# OFFLINE: emit SQL
# ===============================================================
def run_migrations_offline():
    _configure(url=DATABASE_URL, literal_binds=True)

    with context.begin_transaction():
        context.run_migrations()


# ===============================================================
# ONLINE: apply against the database
# ===============================================================
def run_migrations_online():
    engine = create_engine(DATABASE_URL, poolclass=pool.NullPool)

    with engine.connect() as connection:
        _configure(connection=connection)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
