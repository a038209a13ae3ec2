"""Table des maîtrises planétaires par signe.

Le schéma traditionnel (sept corps classiques, Ptolémée) est utilisé par défaut pour désigner le
maître de chaque maison; le schéma moderne substitue Pluton, Uranus et Neptune aux maîtres du
Scorpion, du Verseau et des Poissons.
"""

from __future__ import annotations

from types import MappingProxyType

from natal_backend.domain.entities import CelestialBodyType, ZodiacSign
from natal_backend.domain.errors import ConfigurationError

_B = CelestialBodyType

TRADITIONAL_RULERS = MappingProxyType(
    {
        ZodiacSign.ARIES: _B.MARS,
        ZodiacSign.TAURUS: _B.VENUS,
        ZodiacSign.GEMINI: _B.MERCURY,
        ZodiacSign.CANCER: _B.MOON,
        ZodiacSign.LEO: _B.SUN,
        ZodiacSign.VIRGO: _B.MERCURY,
        ZodiacSign.LIBRA: _B.VENUS,
        ZodiacSign.SCORPIO: _B.MARS,
        ZodiacSign.SAGITTARIUS: _B.JUPITER,
        ZodiacSign.CAPRICORN: _B.SATURN,
        ZodiacSign.AQUARIUS: _B.SATURN,
        ZodiacSign.PISCES: _B.JUPITER,
    }
)

MODERN_RULERS = MappingProxyType(
    {
        **TRADITIONAL_RULERS,
        ZodiacSign.SCORPIO: _B.PLUTO,
        ZodiacSign.AQUARIUS: _B.URANUS,
        ZodiacSign.PISCES: _B.NEPTUNE,
    }
)

SCHEMES = MappingProxyType({"traditional": TRADITIONAL_RULERS, "modern": MODERN_RULERS})


def check_scheme(scheme: str) -> str:
    """Valide un nom de schéma de maîtrises (`ConfigurationError` sinon)."""
    if scheme not in SCHEMES:
        raise ConfigurationError("rulership scheme", scheme)
    return scheme


def ruler_of(sign: ZodiacSign, scheme: str = "traditional") -> CelestialBodyType:
    """Retourne le maître du signe selon le schéma demandé (fonction totale sur 12 signes)."""
    return SCHEMES[check_scheme(scheme)][sign]
