"""SQLAlchemy models for persistence layer (cache de thèmes natals)."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, LargeBinary, MetaData, String
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Classe de base pour tous les modèles SQLAlchemy."""

    metadata = MetaData()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CachedNatalChartORM(Base):
    """Enregistrement de cache encodé (octets JSON produits par `cache_codec`)."""

    __tablename__ = "cached_natal_charts"

    id = Column(String(36), primary_key=True)
    payload = Column(LargeBinary, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
