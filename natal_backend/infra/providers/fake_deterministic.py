"""Fournisseur déterministe pour les tests et le développement.

Renvoie toujours la même réponse au format api.astrology-api.io (thème de référence: Kyiv,
1990-03-25 14:30), sans appel réseau. La réponse contient volontairement un Nœud Sud fournisseur,
un astéroïde et un aspect de type inconnu pour exercer le mapper.
"""

from __future__ import annotations

import copy
from typing import Any

from natal_backend.domain.raw_chart import RawChart
from natal_backend.domain.request_normalizer import ProviderRequest
from natal_backend.infra.providers.astrology_api import decode_response


def _planet(
    name: str, longitude: float, house: int, speed: float, retrograde: bool = False
) -> dict[str, Any]:
    return {
        "name": name,
        "absolute_longitude": longitude,
        "house": house,
        "speed": speed,
        "is_retrograde": retrograde,
    }


_CUSPS = (146.52, 168.30, 194.10, 225.40, 260.15, 295.60, 326.52, 348.30, 14.10, 45.40, 80.15, 115.60)

KYIV_FIXTURE_RESPONSE: dict[str, Any] = {
    "subject_data": {
        "name": "Kyiv fixture",
        "city": "Kyiv",
        "lat": 50.4501,
        "lng": 30.5234,
        "tz_str": "Europe/Kyiv",
        "ascendant": {"name": "Ascendant", "abs_pos": 146.52},
        "medium_coeli": {"name": "Medium_Coeli", "abs_pos": 45.40},
    },
    "chart_data": {
        "planetary_positions": [
            _planet("Sun", 4.85, 8, 0.99),
            _planet("Moon", 312.40, 6, 13.2),
            _planet("Mercury", 348.20, 7, 1.85),
            _planet("Venus", 319.75, 6, 0.71),
            _planet("Mars", 300.60, 6, 0.77),
            _planet("Jupiter", 93.10, 11, 0.09),
            _planet("Saturn", 293.45, 5, 0.05),
            _planet("Uranus", 278.90, 5, 0.02),
            _planet("Neptune", 284.55, 5, 0.01),
            _planet("Pluto", 226.80, 4, -0.02, retrograde=True),
            _planet("True_Node", 47.12, 10, -0.05, retrograde=True),
            # arrondi fournisseur, ignoré au profit du calcul local
            _planet("South_Node", 228.0, 4, -0.05, retrograde=True),
            _planet("Mean_Lilith", 200.50, 3, 0.11),
            _planet("Chiron", 98.30, 11, -0.01, retrograde=True),
        ],
        "house_cusps": [
            {"house": n, "absolute_longitude": lon} for n, lon in enumerate(_CUSPS, start=1)
        ],
        "aspects": [
            {"point1": "Sun", "point2": "Jupiter", "aspect_type": "square", "orb": 1.75},
            {"point1": "Moon", "point2": "Venus", "aspect_type": "conjunction", "orb": 7.35},
            {"point1": "Mars", "point2": "Saturn", "aspect_type": "conjunction", "orb": 7.15},
            {"point1": "Uranus", "point2": "Neptune", "aspect_type": "conjunction", "orb": -5.65},
            {"point1": "Pluto", "point2": "True_Node", "aspect_type": "opposition", "orb": 0.32},
            {"point1": "Mercury", "point2": "Pluto", "aspect_type": "trine", "orb": 1.40},
            {"point1": "Sun", "point2": "Chiron", "aspect_type": "square", "orb": 3.45},
            {"point1": "Moon", "point2": "Mars", "aspect_type": "novile", "orb": 0.2},
        ],
    },
}


class FakeDeterministicProvider:
    """`ProviderClient` hors ligne renvoyant une réponse fixe."""

    name = "fake"
    requires_coordinate = False

    def __init__(self, payload: dict[str, Any] | None = None):
        self.payload = payload if payload is not None else KYIV_FIXTURE_RESPONSE
        self.calls = 0

    def fetch_chart(self, request: ProviderRequest) -> RawChart:
        """Décode une copie de la réponse fixe (la requête n'est pas exploitée)."""
        self.calls += 1
        raw = decode_response(copy.deepcopy(self.payload))
        return RawChart(
            provider=self.name,
            bodies=raw.bodies,
            houses=raw.houses,
            aspects=raw.aspects,
            angles=raw.angles,
        )
