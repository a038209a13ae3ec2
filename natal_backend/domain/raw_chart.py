"""Forme intermédiaire commune à tous les fournisseurs d'éphémérides.

Chaque décodeur fournisseur (voir `infra.providers`) convertit ses DTO vers ces structures; aucun
nom de champ propre à un fournisseur ne dépasse cette frontière. Les valeurs restent toutefois
"brutes": drapeaux encodés en chaînes, maisons nommées, longitudes non normalisées. Le mapper se
charge de les valider.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RawBody:
    """Corps céleste tel que renvoyé par le fournisseur."""

    name: str
    longitude: float | None
    latitude: float | None = None
    speed: float | None = None
    retrograde: bool | str | None = None


@dataclass(frozen=True)
class RawHouse:
    """Cuspide brute: numéro entier, numéro en chaîne ou nom ("First House")."""

    house: int | str | None
    longitude: float | None


@dataclass(frozen=True)
class RawAspect:
    """Aspect brut entre deux identifiants de corps."""

    first: str
    second: str
    type: str
    orb: float | None
    applying: bool | str | None = None


@dataclass(frozen=True)
class RawAngle:
    """Angle du thème (Ascendant, MC...) sous son nom fournisseur."""

    name: str
    longitude: float | None


@dataclass(frozen=True)
class RawChart:
    """Réponse fournisseur ramenée à une forme unique."""

    provider: str
    bodies: list[RawBody] = field(default_factory=list)
    houses: list[RawHouse] = field(default_factory=list)
    aspects: list[RawAspect] = field(default_factory=list)
    angles: list[RawAngle] = field(default_factory=list)
