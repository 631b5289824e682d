"""
Alembic Environment Configuration - Alternance360

Ce fichier configure Alembic pour :
1. Charger l'URL de la base depuis app/core/config (qui lit le .env)
2. Importer tous les modèles SQLAlchemy pour la détection automatique
3. Supporter les migrations online (base connectée) et offline (génération SQL)
"""

from logging.config import fileConfig

from sqlalchemy import create_engine, pool

from alembic import context

from app.core.config import settings

# Charge tous les modèles pour que l'autogenerate voie toutes les tables
from app.database.base import metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = metadata


def get_url() -> str:
    """URL de la base, chargée depuis le .env via pydantic-settings."""
    return settings.DATABASE_URL


def include_object(object, name, type_, reflected, compare_to):
    """Filtre les objets à inclure dans les migrations (tout par défaut)."""
    return True


def run_migrations_offline() -> None:
    """
    Génère le SQL sans se connecter à la base.

    Usage:
        alembic upgrade head --sql > migration.sql
    """
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """
    Applique les migrations sur la base connectée.

    Usage:
        alembic upgrade head
    """
    connectable = create_engine(get_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=True,
            include_object=include_object,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
