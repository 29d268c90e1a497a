from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool, create_engine

from app.db.session import Base

# Import all models so Alembic sees them in metadata
from app.models.booking import Booking  # noqa: F401
from app.models.audit_log import AuditLog  # noqa: F401


# Alembic Config object
config = context.config

# Callers of app.db.migrate pass the URL explicitly; the CLI falls back to app settings.
db_url = config.get_main_option("sqlalchemy.url")
if not db_url:
    from app.core.config import get_settings
    db_url = get_settings().DATABASE_URL
    config.set_main_option("sqlalchemy.url", db_url.replace("%", "%%"))

# Logging config; keep application loggers that already exist
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# Target metadata for autogenerate
target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    url = config.get_main_option("sqlalchemy.url")
    connectable = create_engine(url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
