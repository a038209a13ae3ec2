"""Identité des données de naissance pour le cache de thèmes.

Deux notions coexistent:
- `birth_data_matches`: égalité tolérante (secondes tronquées, lieu sans casse, coordonnées à
  1e-4 degré près), seule règle qui décide d'un succès de cache;
- `fingerprint`: empreinte sha256 stable, indicative, stockée avec l'enregistrement pour
  l'indexation et les journaux.
"""

from __future__ import annotations

import hashlib

from natal_backend.domain.entities import BirthData, HouseSystem

COORDINATE_EPSILON = 1e-4
FINGERPRINT_DECIMALS = 4


def _coordinates_match(a: BirthData, b: BirthData) -> bool:
    if a.coordinate is None or b.coordinate is None:
        return a.coordinate is None and b.coordinate is None
    return (
        abs(a.coordinate.latitude - b.coordinate.latitude) < COORDINATE_EPSILON
        and abs(a.coordinate.longitude - b.coordinate.longitude) < COORDINATE_EPSILON
    )


def birth_data_matches(a: BirthData, b: BirthData) -> bool:
    """Vrai si deux données de naissance désignent le même thème.

    Le nom n'intervient pas: ce n'est qu'une étiquette.
    """
    ta, tb = a.birth_time, b.birth_time
    return (
        a.birth_date == b.birth_date
        and (ta.hour, ta.minute, ta.second) == (tb.hour, tb.minute, tb.second)
        and a.location.casefold() == b.location.casefold()
        and a.timezone == b.timezone
        and _coordinates_match(a, b)
    )


def fingerprint(birth: BirthData, house_system: str | HouseSystem) -> str:
    """Empreinte hexadécimale des champs identifiants (date, heure, lieu, fuseau, coordonnée)."""
    system = HouseSystem.parse(house_system)
    coord = birth.coordinate
    parts = [
        birth.birth_date.isoformat(),
        birth.birth_time.replace(microsecond=0, tzinfo=None).isoformat(),
        birth.location.casefold(),
        birth.timezone,
        f"{coord.latitude:.{FINGERPRINT_DECIMALS}f}" if coord else "-",
        f"{coord.longitude:.{FINGERPRINT_DECIMALS}f}" if coord else "-",
        system.value,
    ]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()
