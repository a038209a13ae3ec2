"""Stockage SQL du cache de thèmes (table `cached_natal_charts`)."""

from __future__ import annotations

import threading
from datetime import UTC, datetime

from sqlalchemy import delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from natal_backend.domain.errors import PersistenceError
from natal_backend.infra.repo.db import session_scope
from natal_backend.infra.repo.models import Base, CachedNatalChartORM


class SqlChartStore:
    """`ChartStore` adossé à SQLAlchemy.

    Chaque écriture tient dans une transaction; les écrivains d'un même processus sont
    sérialisés par un verrou local.
    """

    def __init__(self, engine: Engine, create_schema: bool = False) -> None:
        """Construit le store; `create_schema` crée la table (tests, SQLite)."""
        self.engine = engine
        self._lock = threading.RLock()
        if create_schema:
            Base.metadata.create_all(engine)

    def insert(self, record_id: str, payload: bytes) -> None:
        """Insère ou remplace la ligne `record_id`."""
        try:
            with session_scope(self.engine) as session:
                row = session.get(CachedNatalChartORM, record_id)
                if row is None:
                    session.add(CachedNatalChartORM(id=record_id, payload=payload))
                else:
                    row.payload = payload
                    row.updated_at = datetime.now(UTC)
        except SQLAlchemyError as err:
            raise PersistenceError(f"sql insert failed for {record_id}: {err}") from err

    def fetch_all(self) -> dict[str, bytes]:
        """Retourne toutes les lignes {id: payload}."""
        try:
            with session_scope(self.engine) as session:
                rows = session.execute(select(CachedNatalChartORM)).scalars().all()
                return {row.id: bytes(row.payload) for row in rows}
        except SQLAlchemyError as err:
            raise PersistenceError(f"sql fetch failed: {err}") from err

    def delete(self, record_id: str) -> None:
        """Supprime la ligne `record_id` si elle existe."""
        try:
            with session_scope(self.engine) as session:
                session.execute(
                    delete(CachedNatalChartORM).where(CachedNatalChartORM.id == record_id)
                )
        except SQLAlchemyError as err:
            raise PersistenceError(f"sql delete failed for {record_id}: {err}") from err

    def write_lock(self) -> threading.RLock:
        """Verrou des écrivains."""
        return self._lock
