"""Normalisation des données de naissance en requête fournisseur.

La requête produite (`ProviderRequest`) est indépendante de tout fournisseur: chaque adaptateur
d'`infra.providers` la traduit ensuite dans son propre format (corps JSON, paramètres d'URL...).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from natal_backend.domain.entities import BirthData, HouseSystem
from natal_backend.domain.errors import ConfigurationError, MissingCoordinateError

SECONDS_PER_HOUR = 3600.0


@dataclass(frozen=True)
class ProviderRequest:
    """Requête normalisée: champs calendaires séparés, coordonnées et fuseau."""

    name: str
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int
    latitude: float | None
    longitude: float | None
    timezone: str
    utc_offset_hours: float
    house_system: HouseSystem
    location: str

    @property
    def has_coordinate(self) -> bool:
        """Vrai si latitude et longitude sont renseignées."""
        return self.latitude is not None and self.longitude is not None

    def local_datetime(self) -> datetime:
        """Instant de naissance local (avec fuseau IANA)."""
        return datetime(
            self.year,
            self.month,
            self.day,
            self.hour,
            self.minute,
            self.second,
            tzinfo=ZoneInfo(self.timezone),
        )

    def utc_offset_label(self) -> str:
        """Décalage UTC au format `+HH:MM`."""
        total_minutes = round(self.utc_offset_hours * 60)
        sign = "+" if total_minutes >= 0 else "-"
        hours, minutes = divmod(abs(total_minutes), 60)
        return f"{sign}{hours:02d}:{minutes:02d}"


def parse_house_system(value: str | HouseSystem) -> HouseSystem:
    """Valide un système de maisons (`ConfigurationError` nommant la valeur invalide)."""
    return HouseSystem.parse(value)


def resolve_zone(timezone: str) -> ZoneInfo:
    """Charge un fuseau IANA ou lève `ConfigurationError`."""
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as err:
        raise ConfigurationError("timezone", timezone) from err


def normalize_request(
    birth: BirthData,
    house_system: str | HouseSystem,
    *,
    require_coordinate: bool = True,
    provider: str = "provider",
) -> ProviderRequest:
    """Construit la requête fournisseur à partir des données de naissance.

    Paramètres:
    - birth: données de naissance (date, heure, fuseau, coordonnée optionnelle).
    - house_system: identifiant de système de maisons.
    - require_coordinate: si vrai, une coordonnée absente lève `MissingCoordinateError`
      avant toute tentative réseau.
    - provider: nom du fournisseur (pour les messages d'erreur).

    Retour: `ProviderRequest`.
    """
    system = parse_house_system(house_system)
    zone = resolve_zone(birth.timezone)
    if require_coordinate and birth.coordinate is None:
        raise MissingCoordinateError(provider)

    local = datetime.combine(birth.birth_date, birth.birth_time.replace(microsecond=0, tzinfo=None))
    offset = local.replace(tzinfo=zone).utcoffset()
    offset_hours = offset.total_seconds() / SECONDS_PER_HOUR if offset is not None else 0.0

    coord = birth.coordinate
    return ProviderRequest(
        name=birth.name,
        year=local.year,
        month=local.month,
        day=local.day,
        hour=local.hour,
        minute=local.minute,
        second=local.second,
        latitude=coord.latitude if coord else None,
        longitude=coord.longitude if coord else None,
        timezone=birth.timezone,
        utc_offset_hours=offset_hours,
        house_system=system,
        location=birth.location,
    )
