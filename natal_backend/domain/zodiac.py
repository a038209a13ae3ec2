"""Calculs zodiacaux élémentaires sur les longitudes écliptiques.

Fonctions pures partagées par le mapper et les tests:
- normalisation d'une longitude dans [0, 360);
- signe (segments de 30°) et degré dans le signe;
- maison contenant une longitude d'après les cuspides.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from natal_backend.domain.entities import FULL_CIRCLE, HouseCusp, ZodiacSign


def normalize_longitude(value: float) -> float:
    """Ramène une longitude dans [0, 360).

    Lève `ValueError` pour une valeur non finie (NaN, infini).
    """
    if not math.isfinite(value):
        raise ValueError(f"longitude is not a finite number: {value}")
    result = value % FULL_CIRCLE
    # -1e-20 % 360 vaut 360.0 en flottants
    if result >= FULL_CIRCLE:
        result = 0.0
    return result


def sign_for_longitude(longitude: float) -> ZodiacSign:
    """Signe zodiacal d'une longitude quelconque (normalisée au préalable)."""
    return ZodiacSign.from_longitude(normalize_longitude(longitude))


def degree_in_sign(longitude: float) -> float:
    """Degré à l'intérieur du signe, dans [0, 30)."""
    lon = normalize_longitude(longitude)
    return lon - ZodiacSign.from_longitude(lon).start


def forward_arc(start: float, end: float) -> float:
    """Arc parcouru dans le sens direct de `start` à `end`, dans [0, 360)."""
    return normalize_longitude(end - start)


def house_for_longitude(longitude: float, cusps: Sequence[HouseCusp]) -> int:
    """Numéro de la maison contenant `longitude`.

    La maison retenue est celle dont la cuspide précède la longitude avec le plus petit arc
    direct; c'est l'intervalle [cuspide n, cuspide n+1) y compris au passage 360°/0°.
    """
    if not cusps:
        raise ValueError("house cusps are required")
    lon = normalize_longitude(longitude)
    best = min(cusps, key=lambda c: (forward_arc(c.longitude, lon), c.number))
    return best.number
