import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config
from sqlalchemy import pool

# Add the project root to sys.path so `backend.app` is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

# Import SQLModel base (registers users/devices/accounts/transactions) and config
from backend.app.db.base import SQLModel
from backend.app.config import get_settings

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Override sqlalchemy.url with our config or from -x parameter
# Check if database URL was passed via -x sqlalchemy.url="..."
db_url = None
if hasattr(config, 'cmd_opts') and hasattr(config.cmd_opts, 'x'):
    if config.cmd_opts.x:
        for x_arg in config.cmd_opts.x:
            if x_arg.startswith('sqlalchemy.url='):
                db_url = x_arg.split('=', 1)[1]
                break

if db_url:
    # Use URL passed from command line (e.g., for tests)
    print(f"[Alembic env.py] Using DATABASE_URL from -x parameter: {db_url}")
else:
    # Use URL from config.py (respects SAVINGSVAULT_TEST_MODE)
    db_url = get_settings().DATABASE_URL
    print(f"[Alembic env.py] Using DATABASE_URL from config: {db_url}")

# Migrations run on the sync driver
config.set_main_option("sqlalchemy.url", db_url.replace("sqlite+aiosqlite:///", "sqlite:///"))

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Set SQLModel metadata for autogenerate
target_metadata = SQLModel.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (emit SQL without a DBAPI)."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,  # Enable batch mode for SQLite
        )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a live connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
        )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=True,  # Enable batch mode for SQLite
            )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
