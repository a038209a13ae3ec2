# Schémas Pydantic exposés par l'API (requêtes et réponses).

from datetime import date, datetime, time

from pydantic import BaseModel, Field, model_validator

from natal_backend.domain.entities import BirthData, Coordinate


class NatalChartRequest(BaseModel):
    """Modèle de requête pour obtenir un thème natal.

    Champs:
    - name: str (étiquette d'affichage)
    - birth_date: date (YYYY-MM-DD)
    - birth_time: time (HH:MM[:SS])
    - tz: str (IANA timezone)
    - lat, lon: float | None (ensemble ou pas du tout)
    - location: str (libellé du lieu)
    - house_system: str | None (système par défaut de la configuration si absent)
    - force_refresh: bool (ignore le cache)
    """

    name: str = ""
    birth_date: date
    birth_time: time
    tz: str = Field(..., min_length=1)
    lat: float | None = Field(default=None, ge=-90, le=90)
    lon: float | None = Field(default=None, ge=-180, le=180)
    location: str = ""
    house_system: str | None = None
    force_refresh: bool = False

    @model_validator(mode="after")
    def _coordinate_pair(self) -> "NatalChartRequest":
        if (self.lat is None) != (self.lon is None):
            raise ValueError("lat and lon must be given together")
        return self

    def to_birth_data(self) -> BirthData:
        """Convertit la requête en `BirthData` du domaine."""
        coordinate = None
        if self.lat is not None and self.lon is not None:
            coordinate = Coordinate(latitude=self.lat, longitude=self.lon)
        return BirthData(
            name=self.name,
            birth_date=self.birth_date,
            birth_time=self.birth_time,
            timezone=self.tz,
            coordinate=coordinate,
            location=self.location,
        )


class EvictRequest(BaseModel):
    """Référence de l'éviction: maintenant par défaut, lue en UTC si naïve."""

    reference_time: datetime | None = None


class EvictResponse(BaseModel):
    """Nombre d'enregistrements évincés."""

    evicted: int
