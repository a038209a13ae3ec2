"""
Entités du domaine métier.

Ce module définit le modèle de données du thème natal: données de naissance, corps célestes,
cuspides de maisons, aspects, angles, maîtrises de maisons et l'agrégat `NatalChart`.

Toutes les entités sont immuables (`frozen=True`); un thème n'est jamais modifié en place,
il est remplacé (nouvelles données de naissance, autre système de maisons) ou copié
(`NatalChart.with_image`).
"""

from __future__ import annotations

import math
import uuid
from datetime import date, datetime, time
from enum import Enum
from typing import Annotated, Literal

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from natal_backend.domain.errors import ConfigurationError

FULL_CIRCLE = 360.0
SIGN_WIDTH = 30.0
HOUSE_COUNT = 12


def _alias_key(name: str) -> str:
    """Clé de comparaison tolérante: minuscules, sans espaces, tirets ni soulignés."""
    return "".join(ch for ch in name.lower() if ch not in " _-")


class ZodiacSign(str, Enum):
    """Signes du zodiaque tropical, dans l'ordre des longitudes croissantes."""

    ARIES = "Aries"
    TAURUS = "Taurus"
    GEMINI = "Gemini"
    CANCER = "Cancer"
    LEO = "Leo"
    VIRGO = "Virgo"
    LIBRA = "Libra"
    SCORPIO = "Scorpio"
    SAGITTARIUS = "Sagittarius"
    CAPRICORN = "Capricorn"
    AQUARIUS = "Aquarius"
    PISCES = "Pisces"

    @property
    def ordinal(self) -> int:
        """Rang du signe (0 = Bélier, 11 = Poissons)."""
        return list(ZodiacSign).index(self)

    @property
    def start(self) -> float:
        """Longitude écliptique du début du signe."""
        return self.ordinal * SIGN_WIDTH

    @classmethod
    def from_longitude(cls, longitude: float) -> ZodiacSign:
        """Signe contenant une longitude déjà normalisée dans [0, 360)."""
        idx = int(math.floor(longitude / SIGN_WIDTH))
        return list(cls)[min(max(idx, 0), HOUSE_COUNT - 1)]


class CelestialBodyType(str, Enum):
    """Corps suivis par l'application (extensible)."""

    SUN = "Sun"
    MOON = "Moon"
    MERCURY = "Mercury"
    VENUS = "Venus"
    MARS = "Mars"
    JUPITER = "Jupiter"
    SATURN = "Saturn"
    URANUS = "Uranus"
    NEPTUNE = "Neptune"
    PLUTO = "Pluto"
    TRUE_NODE = "True Node"
    SOUTH_NODE = "South Node"
    LILITH = "Lilith"

    @classmethod
    def from_provider_name(cls, name: str | None) -> CelestialBodyType | None:
        """Traduit un nom fournisseur; `None` pour les corps non suivis (astéroïdes...)."""
        if not name:
            return None
        return _BODY_ALIASES.get(_alias_key(name))


_BODY_ALIASES: dict[str, CelestialBodyType] = {
    **{_alias_key(b.value): b for b in CelestialBodyType},
    "truenode": CelestialBodyType.TRUE_NODE,
    "northnode": CelestialBodyType.TRUE_NODE,
    "truenorthnode": CelestialBodyType.TRUE_NODE,
    "rahu": CelestialBodyType.TRUE_NODE,
    "southnode": CelestialBodyType.SOUTH_NODE,
    "truesouthnode": CelestialBodyType.SOUTH_NODE,
    "ketu": CelestialBodyType.SOUTH_NODE,
    "meanlilith": CelestialBodyType.LILITH,
    "blackmoon": CelestialBodyType.LILITH,
    "blackmoonlilith": CelestialBodyType.LILITH,
}


class AspectType(str, Enum):
    """Aspects majeurs et mineurs reconnus."""

    CONJUNCTION = "Conjunction"
    OPPOSITION = "Opposition"
    TRINE = "Trine"
    SQUARE = "Square"
    SEXTILE = "Sextile"
    QUINCUNX = "Quincunx"
    SEMISEXTILE = "Semisextile"
    SEMISQUARE = "Semisquare"
    SESQUISQUARE = "Sesquisquare"
    QUINTILE = "Quintile"
    BIQUINTILE = "Biquintile"

    @property
    def angle(self) -> float:
        """Angle exact de l'aspect, en degrés."""
        return _ASPECT_ANGLES[self]

    @classmethod
    def from_provider_name(cls, name: str | None) -> AspectType | None:
        """Traduit un nom d'aspect fournisseur; `None` si inconnu."""
        if not name:
            return None
        return _ASPECT_ALIASES.get(_alias_key(name))


_ASPECT_ANGLES: dict[AspectType, float] = {
    AspectType.CONJUNCTION: 0.0,
    AspectType.OPPOSITION: 180.0,
    AspectType.TRINE: 120.0,
    AspectType.SQUARE: 90.0,
    AspectType.SEXTILE: 60.0,
    AspectType.QUINCUNX: 150.0,
    AspectType.SEMISEXTILE: 30.0,
    AspectType.SEMISQUARE: 45.0,
    AspectType.SESQUISQUARE: 135.0,
    AspectType.QUINTILE: 72.0,
    AspectType.BIQUINTILE: 144.0,
}

_ASPECT_ALIASES: dict[str, AspectType] = {
    **{_alias_key(a.value): a for a in AspectType},
    "inconjunct": AspectType.QUINCUNX,
    "sesquiquadrate": AspectType.SESQUISQUARE,
    "semiquadrate": AspectType.SEMISQUARE,
}


class HouseSystem(str, Enum):
    """Systèmes de maisons supportés (identifiants internes)."""

    PLACIDUS = "placidus"
    KOCH = "koch"
    WHOLE_SIGN = "whole_sign"
    EQUAL = "equal"
    CAMPANUS = "campanus"
    REGIOMONTANUS = "regiomontanus"
    PORPHYRY = "porphyry"
    TOPOCENTRIC = "topocentric"
    ALCABITIUS = "alcabitius"
    MORINUS = "morinus"

    @property
    def cusp_one_is_ascendant(self) -> bool:
        """Vrai si la cuspide I coïncide avec l'Ascendant."""
        return self not in (HouseSystem.WHOLE_SIGN, HouseSystem.MORINUS)

    @property
    def cusp_ten_is_midheaven(self) -> bool:
        """Vrai si la cuspide X coïncide avec le Milieu du Ciel (systèmes quadrants)."""
        return self not in (HouseSystem.WHOLE_SIGN, HouseSystem.EQUAL, HouseSystem.MORINUS)

    @classmethod
    def parse(cls, value: str | HouseSystem) -> HouseSystem:
        """Analyse un identifiant de système de maisons.

        Lève `ConfigurationError` (avec la valeur fautive) pour tout système non supporté.
        """
        if isinstance(value, HouseSystem):
            return value
        key = _alias_key(str(value))
        found = _HOUSE_SYSTEM_ALIASES.get(key)
        if found is None:
            raise ConfigurationError("house system", value)
        return found


_HOUSE_SYSTEM_ALIASES: dict[str, HouseSystem] = {
    **{_alias_key(h.value): h for h in HouseSystem},
    "equalhouse": HouseSystem.EQUAL,
    "wholesigns": HouseSystem.WHOLE_SIGN,
}


def _check_longitude(value: float) -> float:
    if not math.isfinite(value) or not 0.0 <= value < FULL_CIRCLE:
        raise ValueError(f"longitude must be within [0, 360), got {value}")
    return value


Longitude = Annotated[float, AfterValidator(_check_longitude)]


class Coordinate(BaseModel):
    """Position géographique en degrés décimaux."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class BirthData(BaseModel):
    """Données de naissance pour le calcul astrologique.

    Le nom est une simple étiquette d'affichage. Une coordonnée absente est un état
    volontaire ("coordonnée inconnue"), pas une erreur.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = ""
    birth_date: date
    birth_time: time
    timezone: str = Field(..., min_length=1, description="IANA TZ, e.g. Europe/Kyiv")
    coordinate: Coordinate | None = None
    location: str = ""

    @property
    def display_name(self) -> str:
        """Nom affichable, avec repli si vide."""
        return self.name or "Natal chart"


class CelestialBody(BaseModel):
    """Position d'un corps céleste dans le thème."""

    model_config = ConfigDict(frozen=True)

    body: CelestialBodyType
    longitude: Longitude
    latitude: float = 0.0
    sign: ZodiacSign
    house: int = Field(..., ge=1, le=HOUSE_COUNT)
    retrograde: bool = False
    speed: float = 0.0

    @model_validator(mode="after")
    def _sign_matches_longitude(self) -> CelestialBody:
        if self.sign != ZodiacSign.from_longitude(self.longitude):
            raise ValueError(f"sign {self.sign.value} does not contain {self.longitude}")
        return self

    @property
    def degree_in_sign(self) -> float:
        """Degré à l'intérieur du signe (0-30)."""
        return self.longitude - self.sign.start


class HouseCusp(BaseModel):
    """Cuspide (début) d'une maison."""

    model_config = ConfigDict(frozen=True)

    number: int = Field(..., ge=1, le=HOUSE_COUNT)
    longitude: Longitude
    sign: ZodiacSign


class Aspect(BaseModel):
    """Aspect angulaire entre deux corps distincts."""

    model_config = ConfigDict(frozen=True)

    first: CelestialBodyType
    second: CelestialBodyType
    type: AspectType
    orb: float = Field(..., ge=0)
    applying: bool | None = None

    @model_validator(mode="after")
    def _distinct_bodies(self) -> Aspect:
        if self.first == self.second:
            raise ValueError("an aspect needs two distinct bodies")
        return self


class ChartAngles(BaseModel):
    """Ascendant et Milieu du Ciel."""

    model_config = ConfigDict(frozen=True)

    ascendant: Longitude
    midheaven: Longitude


class HouseRuler(BaseModel):
    """Maître d'une maison et sa propre position (référence dérivée)."""

    model_config = ConfigDict(frozen=True)

    house: int = Field(..., ge=1, le=HOUSE_COUNT)
    ruler: CelestialBodyType
    ruler_sign: ZodiacSign
    ruler_house: int = Field(..., ge=1, le=HOUSE_COUNT)
    ruler_longitude: float


class ChartImageRef(BaseModel):
    """Référence opaque vers une image de roue déjà rendue et mise en cache."""

    model_config = ConfigDict(frozen=True)

    file_id: str = Field(..., min_length=1)
    format: Literal["svg", "png"] = "svg"


class NatalChart(BaseModel):
    """Thème natal complet (racine d'agrégat).

    Invariants
    - au moins un corps céleste;
    - exactement 12 cuspides numérotées 1 à 12, chacune une seule fois (triées par numéro);
    - `computed_at` porte un fuseau horaire.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    birth: BirthData
    bodies: tuple[CelestialBody, ...]
    houses: tuple[HouseCusp, ...]
    aspects: tuple[Aspect, ...] = ()
    house_rulers: tuple[HouseRuler, ...] = ()
    angles: ChartAngles
    computed_at: datetime
    house_system: HouseSystem = HouseSystem.PLACIDUS
    image: ChartImageRef | None = None

    @field_validator("bodies")
    @classmethod
    def _non_empty_bodies(cls, value: tuple[CelestialBody, ...]) -> tuple[CelestialBody, ...]:
        if not value:
            raise ValueError("a natal chart needs at least one celestial body")
        return value

    @field_validator("houses")
    @classmethod
    def _twelve_houses(cls, value: tuple[HouseCusp, ...]) -> tuple[HouseCusp, ...]:
        numbers = sorted(h.number for h in value)
        if numbers != list(range(1, HOUSE_COUNT + 1)):
            raise ValueError(f"expected houses 1..12 exactly once, got {numbers}")
        return tuple(sorted(value, key=lambda h: h.number))

    @field_validator("computed_at")
    @classmethod
    def _aware_timestamp(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("computed_at must be timezone-aware")
        return value

    def body(self, kind: CelestialBodyType) -> CelestialBody | None:
        """Retourne la position d'un corps, ou None s'il est absent du thème."""
        return next((b for b in self.bodies if b.body == kind), None)

    def house(self, number: int) -> HouseCusp:
        """Retourne la cuspide de la maison `number` (1-12)."""
        return self.houses[number - 1]

    def with_image(self, image: ChartImageRef | None) -> NatalChart:
        """Copie du thème avec une référence d'image attachée (seule évolution permise)."""
        return self.model_copy(update={"image": image})


class CacheRecord(BaseModel):
    """Forme persistée d'un thème, propriété exclusive du cache."""

    model_config = ConfigDict(frozen=True)

    id: str
    fingerprint: str
    house_system: HouseSystem
    birth: BirthData
    chart: NatalChart
    generated_at: datetime
