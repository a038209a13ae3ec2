"""
Environnement Alembic du cache de thèmes natals.

L'URL de base vient de la configuration applicative (`DATABASE_URL` via `Settings`), avec un
fichier SQLite local par défaut. Le schéma cible est celui de `natal_backend.infra.repo.models`.
"""

from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path

from sqlalchemy import create_engine, pool

from alembic import context  # type: ignore[attr-defined]

# Racine du dépôt importable depuis la CLI Alembic
_ROOT = str(Path(__file__).resolve().parent.parent)
if _ROOT not in sys.path:
    sys.path.append(_ROOT)

from natal_backend.core.settings import get_settings  # noqa: E402
from natal_backend.infra.repo.models import Base  # noqa: E402

DEFAULT_SQLITE_URL = "sqlite:///./natal_cache.db"

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _database_url() -> str:
    return get_settings().DATABASE_URL or DEFAULT_SQLITE_URL


def _configure_kwargs(url: str) -> dict:
    # SQLite ne supporte pas ALTER COLUMN: mode batch pour les migrations suivantes
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Émet le SQL des migrations sans connexion (bindings littéraux)."""
    url = _database_url()
    context.configure(url=url, literal_binds=True, **_configure_kwargs(url))
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Applique les migrations sur une connexion active."""
    url = _database_url()
    connectable = create_engine(url, poolclass=pool.NullPool)
    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_kwargs(url))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
