"""Classement déterministe des aspects pour les rapports.

Règles
------
1. Clé primaire: orbe croissant (un aspect exact passe en premier).
2. Clé secondaire, uniquement entre aspects dont les orbes diffèrent d'au plus `tolerance`
   (borne incluse): importance du type (conjonction/opposition > trigone/carré > sextile >
   aspects mineurs).
3. Tri stable: à clés égales, l'ordre d'entrée est conservé.

Mise en œuvre: tri stable par orbe, puis échanges d'éléments adjacents tant qu'un aspect plus
important suit un aspect d'orbe voisin. Deux aspects ne changent d'ordre relatif qu'en étant
échangés directement, donc `a.orb + tolerance + ORB_EPSILON < b.orb` garantit que `a` reste
devant `b`.
"""

from __future__ import annotations

from collections.abc import Iterable
from types import MappingProxyType

from natal_backend.domain.entities import Aspect, AspectType

ORB_TOLERANCE = 0.1
# Marge d'arrondi: les orbes arrivent arrondis au centième, un écart de 0.1 exact compte
ORB_EPSILON = 1e-9

ASPECT_PRECEDENCE = MappingProxyType(
    {
        AspectType.CONJUNCTION: 0,
        AspectType.OPPOSITION: 0,
        AspectType.TRINE: 1,
        AspectType.SQUARE: 1,
        AspectType.SEXTILE: 2,
        AspectType.QUINCUNX: 3,
        AspectType.SEMISEXTILE: 4,
        AspectType.SEMISQUARE: 5,
        AspectType.SESQUISQUARE: 6,
        AspectType.QUINTILE: 7,
        AspectType.BIQUINTILE: 8,
    }
)


def precedence(aspect_type: AspectType) -> int:
    """Rang d'importance d'un type d'aspect (0 = le plus important)."""
    return ASPECT_PRECEDENCE[aspect_type]


def rank_aspects(
    aspects: Iterable[Aspect],
    tolerance: float = ORB_TOLERANCE,
    limit: int | None = None,
) -> list[Aspect]:
    """Retourne les aspects dans l'ordre de présentation.

    Paramètres:
    - aspects: aspects non ordonnés.
    - tolerance: écart d'orbe sous lequel le type départage deux aspects.
    - limit: nombre maximal d'aspects conservés (tous si None).
    """
    ranked = sorted(aspects, key=lambda a: a.orb)
    swapped = True
    while swapped:
        swapped = False
        for i in range(len(ranked) - 1):
            left, right = ranked[i], ranked[i + 1]
            if (
                abs(right.orb - left.orb) <= tolerance + ORB_EPSILON
                and precedence(right.type) < precedence(left.type)
            ):
                ranked[i], ranked[i + 1] = right, left
                swapped = True
    if limit is not None:
        return ranked[: max(limit, 0)]
    return ranked
