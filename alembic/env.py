"""Alembic environment for the fusion ingestion schema."""

from __future__ import annotations

from logging.config import fileConfig
from typing import Any

from sqlalchemy import create_engine, pool

from alembic import context  # type: ignore[import-untyped]
from fusion_ingestor.exceptions import ConfigurationError
from fusion_ingestor.models.base import Base, load_models
from fusion_ingestor.utils.config import ensure_runtime_configuration

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

load_models()
target_metadata = Base.metadata

# Upserts rely on the unique and check constraints, so diffs must include them.
CONFIGURE_OPTIONS: dict[str, Any] = {
    "target_metadata": target_metadata,
    "compare_type": True,
    "compare_server_default": True,
    "transaction_per_migration": True,
    "render_as_batch": False,
}


def resolve_database_url() -> str:
    """Migrations run against the same URL the service uses, after secrets are exported."""

    settings = ensure_runtime_configuration()
    if not settings.database_url:
        raise ConfigurationError("FUSION_DATABASE_URL must be set to run migrations")
    return settings.database_url


def run_migrations_offline() -> None:
    context.configure(url=resolve_database_url(), literal_binds=True, **CONFIGURE_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = resolve_database_url()
    # SQLite cannot ALTER constraints in place; batch mode recreates the table instead.
    options = {**CONFIGURE_OPTIONS, "render_as_batch": url.startswith("sqlite")}

    engine = create_engine(url, poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, **options)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
