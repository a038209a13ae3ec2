"""Conversion d'une réponse fournisseur (forme `RawChart`) en `NatalChart`.

Démarche
--------
1. Cuspides: exactement 12 maisons distinctes, numérotées ou nommées ("First House").
2. Corps: longitude normalisée dans [0, 360), signe dérivé, drapeau rétrograde normalisé,
   maison dérivée des cuspides. Les corps non suivis (astéroïdes...) sont ignorés.
3. Nœud Sud: toujours recalculé (Nœud Vrai + 180°), jamais repris du fournisseur.
4. Aspects: ceux qui citent un corps ou un type inconnu sont journalisés puis écartés.
5. Maîtres de maisons via la table des maîtrises; omis si le maître est absent.
6. Angles: Ascendant et Milieu du Ciel (synonymes "Asc", "MC", "Medium Coeli").

Les erreurs fatales (maisons incomplètes, longitude absente, angle requis manquant) lèvent
`MappingError`; les problèmes d'aspects et de maîtres se dégradent par omission.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime

import structlog
from pydantic import ValidationError

from natal_backend.domain.aspect_ranking import rank_aspects
from natal_backend.domain.entities import (
    HOUSE_COUNT,
    Aspect,
    AspectType,
    BirthData,
    CelestialBody,
    CelestialBodyType,
    ChartAngles,
    HouseCusp,
    HouseRuler,
    HouseSystem,
    NatalChart,
    ZodiacSign,
)
from natal_backend.domain.errors import MappingError
from natal_backend.domain.raw_chart import RawAngle, RawAspect, RawBody, RawChart, RawHouse
from natal_backend.domain.rulership import ruler_of
from natal_backend.domain.zodiac import house_for_longitude, normalize_longitude

log = structlog.get_logger(__name__)

SOUTH_NODE_OFFSET = 180.0

_HOUSE_ORDINALS = {
    "first": 1,
    "second": 2,
    "third": 3,
    "fourth": 4,
    "fifth": 5,
    "sixth": 6,
    "seventh": 7,
    "eighth": 8,
    "ninth": 9,
    "tenth": 10,
    "eleventh": 11,
    "twelfth": 12,
}

_ASCENDANT_NAMES = frozenset({"ascendant", "asc", "ac"})
_MIDHEAVEN_NAMES = frozenset({"midheaven", "mc", "mediumcoeli", "mediumcaeli"})


def _key(name: str) -> str:
    return "".join(ch for ch in name.lower() if ch not in " _-")


def parse_flag(value: bool | str | int | float | None) -> bool | None:
    """Normalise un drapeau fournisseur ("True", "false", booléen) en booléen."""
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


def parse_house_number(value: int | str | None) -> int | None:
    """Traduit un identifiant de maison (3, "3", "Third House", "Third_House") en numéro."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        number = value
    else:
        text = value.strip()
        if text.isdigit():
            number = int(text)
        else:
            key = _key(text)
            if key.endswith("house"):
                key = key[: -len("house")]
            number = _HOUSE_ORDINALS.get(key, 0)
    return number if 1 <= number <= HOUSE_COUNT else None


def _finite_longitude(value: float | None, field: str) -> float:
    if value is None:
        raise MappingError(field, "value is missing")
    try:
        return normalize_longitude(float(value))
    except (TypeError, ValueError) as err:
        raise MappingError(field, f"not a finite longitude: {value!r}") from err


def _map_houses(raw_houses: Sequence[RawHouse]) -> list[HouseCusp]:
    cusps: dict[int, HouseCusp] = {}
    for raw in raw_houses:
        number = parse_house_number(raw.house)
        if number is None:
            raise MappingError("houses", f"unrecognised house identifier {raw.house!r}")
        if number in cusps:
            raise MappingError("houses", f"duplicate house {number}")
        lon = _finite_longitude(raw.longitude, f"houses[{number}].longitude")
        cusps[number] = HouseCusp(number=number, longitude=lon, sign=ZodiacSign.from_longitude(lon))
    if len(cusps) != HOUSE_COUNT:
        missing = sorted(set(range(1, HOUSE_COUNT + 1)) - set(cusps))
        raise MappingError("houses", f"expected 12 houses, got {len(cusps)} (missing {missing})")
    return [cusps[n] for n in range(1, HOUSE_COUNT + 1)]


def _make_body(
    kind: CelestialBodyType,
    longitude: float,
    cusps: Sequence[HouseCusp],
    latitude: float | None,
    speed: float | None,
    retrograde: bool | None,
) -> CelestialBody:
    speed_value = float(speed) if speed is not None and math.isfinite(speed) else 0.0
    if retrograde is None:
        retrograde = speed_value < 0
    return CelestialBody(
        body=kind,
        longitude=longitude,
        latitude=float(latitude) if latitude is not None else 0.0,
        sign=ZodiacSign.from_longitude(longitude),
        house=house_for_longitude(longitude, cusps),
        retrograde=retrograde,
        speed=speed_value,
    )


def _map_bodies(raw_bodies: Sequence[RawBody], cusps: Sequence[HouseCusp]) -> list[CelestialBody]:
    bodies: dict[CelestialBodyType, CelestialBody] = {}
    for raw in raw_bodies:
        kind = CelestialBodyType.from_provider_name(raw.name)
        if kind is None:
            log.debug("body_skipped", body=raw.name, reason="untracked")
            continue
        if kind == CelestialBodyType.SOUTH_NODE:
            # recalculé depuis le Nœud Vrai
            continue
        if kind in bodies:
            log.warning("body_duplicate", body=raw.name)
            continue
        lon = _finite_longitude(raw.longitude, f"bodies[{raw.name}].longitude")
        bodies[kind] = _make_body(
            kind, lon, cusps, raw.latitude, raw.speed, parse_flag(raw.retrograde)
        )

    true_node = bodies.get(CelestialBodyType.TRUE_NODE)
    if true_node is not None:
        south_lon = normalize_longitude(true_node.longitude + SOUTH_NODE_OFFSET)
        bodies[CelestialBodyType.SOUTH_NODE] = _make_body(
            CelestialBodyType.SOUTH_NODE,
            south_lon,
            cusps,
            -true_node.latitude,
            true_node.speed,
            true_node.retrograde,
        )

    if not bodies:
        raise MappingError("bodies", "no recognised celestial body in response")
    order = list(CelestialBodyType)
    return sorted(bodies.values(), key=lambda b: order.index(b.body))


def _map_aspects(raw_aspects: Sequence[RawAspect]) -> list[Aspect]:
    aspects: list[Aspect] = []
    for raw in raw_aspects:
        first = CelestialBodyType.from_provider_name(raw.first)
        second = CelestialBodyType.from_provider_name(raw.second)
        kind = AspectType.from_provider_name(raw.type)
        reason = None
        if first is None or second is None:
            reason = "unrecognised_body"
        elif kind is None:
            reason = "unrecognised_type"
        elif first == second:
            reason = "self_aspect"
        elif raw.orb is None or not math.isfinite(raw.orb):
            reason = "missing_orb"
        if reason is not None:
            log.info(
                "aspect_dropped",
                first=raw.first,
                second=raw.second,
                type=raw.type,
                reason=reason,
            )
            continue
        aspects.append(
            Aspect(
                first=first,
                second=second,
                type=kind,
                orb=abs(float(raw.orb)),
                applying=parse_flag(raw.applying),
            )
        )
    return aspects


def compute_house_rulers(
    cusps: Sequence[HouseCusp],
    bodies: Sequence[CelestialBody],
    scheme: str = "traditional",
) -> list[HouseRuler]:
    """Maître de chaque maison d'après le signe de sa cuspide.

    Une maison dont le maître est absent des corps du thème n'a pas d'entrée.
    """
    by_kind = {b.body: b for b in bodies}
    rulers: list[HouseRuler] = []
    for cusp in cusps:
        ruler = ruler_of(cusp.sign, scheme)
        position = by_kind.get(ruler)
        if position is None:
            log.debug("house_ruler_omitted", house=cusp.number, ruler=ruler.value)
            continue
        rulers.append(
            HouseRuler(
                house=cusp.number,
                ruler=ruler,
                ruler_sign=position.sign,
                ruler_house=position.house,
                ruler_longitude=position.longitude,
            )
        )
    return rulers


def _find_angle(angles: Sequence[RawAngle], names: frozenset[str], field: str) -> float | None:
    for angle in angles:
        if _key(angle.name) in names and angle.longitude is not None:
            return _finite_longitude(angle.longitude, field)
    return None


def _map_angles(
    angles: Sequence[RawAngle], cusps: Sequence[HouseCusp], system: HouseSystem
) -> ChartAngles:
    ascendant = _find_angle(angles, _ASCENDANT_NAMES, "ascendant")
    if ascendant is None:
        if not system.cusp_one_is_ascendant:
            raise MappingError("ascendant", f"required by the {system.value} house system")
        ascendant = cusps[0].longitude
    midheaven = _find_angle(angles, _MIDHEAVEN_NAMES, "midheaven")
    if midheaven is None:
        if not system.cusp_ten_is_midheaven:
            raise MappingError("midheaven", f"required by the {system.value} house system")
        midheaven = cusps[9].longitude
    return ChartAngles(ascendant=ascendant, midheaven=midheaven)


def _error_field(err: ValidationError) -> str:
    errors = err.errors()
    if not errors:
        return "chart"
    return ".".join(str(part) for part in errors[0].get("loc", ())) or "chart"


def map_chart(
    raw: RawChart,
    birth: BirthData,
    house_system: str | HouseSystem = HouseSystem.PLACIDUS,
    *,
    computed_at: datetime | None = None,
    rulership_scheme: str = "traditional",
    aspect_limit: int | None = None,
    chart_id: str | None = None,
) -> NatalChart:
    """Construit un `NatalChart` complet à partir d'une réponse fournisseur.

    Paramètres:
    - raw: réponse décodée par l'adaptateur du fournisseur.
    - birth: données de naissance à l'origine de la requête (instantané conservé).
    - house_system: système de maisons demandé.
    - computed_at: horodatage du calcul (UTC courant par défaut).
    - rulership_scheme: schéma de maîtrises ("traditional" | "modern").
    - aspect_limit: nombre maximal d'aspects conservés après classement.

    Lève `MappingError` (avec le champ fautif) si la réponse est inexploitable.
    """
    system = HouseSystem.parse(house_system)
    cusps = _map_houses(raw.houses)
    bodies = _map_bodies(raw.bodies, cusps)
    aspects = rank_aspects(_map_aspects(raw.aspects), limit=aspect_limit)
    rulers = compute_house_rulers(cusps, bodies, rulership_scheme)
    angles = _map_angles(raw.angles, cusps, system)
    try:
        chart = NatalChart(
            id=chart_id or str(uuid.uuid4()),
            birth=birth,
            bodies=tuple(bodies),
            houses=tuple(cusps),
            aspects=tuple(aspects),
            house_rulers=tuple(rulers),
            angles=angles,
            computed_at=computed_at or datetime.now(UTC),
            house_system=system,
        )
    except ValidationError as err:
        raise MappingError(_error_field(err), str(err)) from err
    log.debug(
        "chart_mapped",
        provider=raw.provider,
        bodies=len(bodies),
        aspects=len(aspects),
        rulers=len(rulers),
    )
    return chart
