"""Configuration de test pour pytest avec gestion des chemins et fixtures communes.

Ce module ajoute la racine du projet au sys.path et fournit les données de naissance
de référence (Kyiv), une horloge manipulable et un service de thèmes monté sur un stockage
mémoire.
"""

import os
import sys
from datetime import UTC, date, datetime, time

import pytest

# Ensure project root is on sys.path so that
# imports like `from natal_backend...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from natal_backend.domain.chart_cache import ChartCache  # noqa: E402
from natal_backend.domain.entities import BirthData, Coordinate  # noqa: E402
from natal_backend.domain.services import NatalChartService  # noqa: E402
from natal_backend.infra.image_cache import ImageCache  # noqa: E402
from natal_backend.infra.providers.fake_deterministic import (  # noqa: E402
    FakeDeterministicProvider,
)
from natal_backend.infra.repositories import InMemoryChartStore  # noqa: E402
from tests.fakes import ManualClock  # noqa: E402

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def kyiv_birth() -> BirthData:
    """Données de naissance de référence: Kyiv, 1990-03-25 14:30."""
    return BirthData(
        name="Test",
        birth_date=date(1990, 3, 25),
        birth_time=time(14, 30),
        timezone="Europe/Kyiv",
        coordinate=Coordinate(latitude=50.4501, longitude=30.5234),
        location="Kyiv",
    )


@pytest.fixture
def clock() -> ManualClock:
    """Horloge UTC figée sur T0, avançable via `advance`."""
    return ManualClock(T0)


@pytest.fixture
def store() -> InMemoryChartStore:
    return InMemoryChartStore()


@pytest.fixture
def cache(store, clock) -> ChartCache:
    return ChartCache(store, clock=clock)


@pytest.fixture
def provider() -> FakeDeterministicProvider:
    return FakeDeterministicProvider()


@pytest.fixture
def service(provider, cache, clock, tmp_path) -> NatalChartService:
    """Service complet: fournisseur déterministe, cache mémoire, images sur disque temporaire."""
    return NatalChartService(provider, cache, ImageCache(tmp_path / "images"), clock=clock)
