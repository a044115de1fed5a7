from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from db import _build_database_url
from models import Base
import app.models.employees  # noqa: F401
import app.models.licenses  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _escape_for_alembic_config(url: str) -> str:
    # Alembic uses configparser interpolation: '%' is special.
    # URL-encoded passwords include '%xx', so escape '%' to '%%'.
    return url.replace("%", "%%")


def _render_as_batch(url: str) -> bool:
    # SQLite cannot ALTER constraints in place.
    return url.startswith("sqlite")


def run_migrations_offline() -> None:
    url = _build_database_url()
    context.configure(
        url=_escape_for_alembic_config(url),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=_render_as_batch(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = _build_database_url()
    config.set_main_option("sqlalchemy.url", _escape_for_alembic_config(url))

    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=_render_as_batch(url),
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
