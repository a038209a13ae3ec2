"""Fournisseur Free Astrology API (trois endpoints: planètes, maisons, aspects).

Particularités du format:
- décalage UTC numérique (`timezone: 2.0`) au lieu d'un identifiant IANA;
- drapeau rétrograde en chaîne (`isRetro: "True"`);
- Ascendant et MC livrés dans la liste des planètes;
- aspects sans orbe: il est recalculé à partir des longitudes des deux corps.
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from natal_backend.core.http_constants import HTTP_OK
from natal_backend.domain.entities import FULL_CIRCLE, AspectType
from natal_backend.domain.errors import ProviderUnavailableError
from natal_backend.domain.raw_chart import RawAngle, RawAspect, RawBody, RawChart, RawHouse
from natal_backend.domain.request_normalizer import ProviderRequest
from natal_backend.infra.providers.base import make_http_client, request_json, schema_error

PROVIDER_NAME = "free_astrology"
DEFAULT_BASE_URL = "https://json.freeastrologyapi.com"
ANGLE_NAMES = {"ascendant", "mc", "midheaven"}
# points livrés parmi les planètes mais jamais suivis
IGNORED_POINTS = {"descendant", "ic", "imumcoeli"}


class _DTO(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class LocalizedName(_DTO):
    en: str


class FreeAstrologyPlanet(_DTO):
    planet: LocalizedName
    full_degree: float | None = Field(default=None, alias="fullDegree")
    norm_degree: float | None = Field(default=None, alias="normDegree")
    is_retro: str | bool | None = Field(default=None, alias="isRetro")


class FreeAstrologyHouse(_DTO):
    house: int | str = Field(alias="House")
    degree: float | None = None


class FreeAstrologyHousesOutput(_DTO):
    houses: list[FreeAstrologyHouse] = Field(alias="Houses")


class FreeAstrologyAspect(_DTO):
    planet_1: LocalizedName
    planet_2: LocalizedName
    aspect: LocalizedName


class PlanetsResponse(_DTO):
    status_code: int = Field(alias="statusCode")
    output: list[FreeAstrologyPlanet]


class HousesResponse(_DTO):
    status_code: int = Field(alias="statusCode")
    output: FreeAstrologyHousesOutput


class AspectsResponse(_DTO):
    status_code: int = Field(alias="statusCode")
    output: list[FreeAstrologyAspect]


def build_payload(request: ProviderRequest) -> dict[str, Any]:
    """Corps JSON commun aux trois endpoints."""
    return {
        "year": request.year,
        "month": request.month,
        "date": request.day,
        "hours": request.hour,
        "minutes": request.minute,
        "seconds": request.second,
        "latitude": request.latitude,
        "longitude": request.longitude,
        "timezone": request.utc_offset_hours,
        "config": {
            "observation_point": "topocentric",
            "ayanamsha": "tropical",
            "language": "en",
        },
    }


def _key(name: str) -> str:
    return "".join(ch for ch in name.lower() if ch not in " _-")


def angular_separation(a: float, b: float) -> float:
    """Écart angulaire le plus court entre deux longitudes, dans [0, 180]."""
    diff = abs(a - b) % FULL_CIRCLE
    return min(diff, FULL_CIRCLE - diff)


def _orb(first: float | None, second: float | None, aspect_name: str) -> float | None:
    kind = AspectType.from_provider_name(aspect_name)
    if kind is None or first is None or second is None:
        return None
    return abs(angular_separation(first, second) - kind.angle)


def _check_status(status_code: int, endpoint: str) -> None:
    if status_code != HTTP_OK:
        raise ProviderUnavailableError(PROVIDER_NAME, f"{endpoint} statusCode {status_code}")


def decode_response(
    planets: dict[str, Any], houses: dict[str, Any], aspects: dict[str, Any]
) -> RawChart:
    """Fusionne les trois réponses en un `RawChart`."""
    try:
        planets_dto = PlanetsResponse.model_validate(planets)
        houses_dto = HousesResponse.model_validate(houses)
        aspects_dto = AspectsResponse.model_validate(aspects)
    except ValidationError as err:
        raise schema_error(PROVIDER_NAME, err) from err
    _check_status(planets_dto.status_code, "planets")
    _check_status(houses_dto.status_code, "houses")
    _check_status(aspects_dto.status_code, "aspects")

    bodies: list[RawBody] = []
    angles: list[RawAngle] = []
    positions: dict[str, float | None] = {}
    for p in planets_dto.output:
        key = _key(p.planet.en)
        positions[key] = p.full_degree
        if key in ANGLE_NAMES:
            angles.append(RawAngle(p.planet.en, p.full_degree))
        elif key not in IGNORED_POINTS:
            bodies.append(RawBody(name=p.planet.en, longitude=p.full_degree, retrograde=p.is_retro))

    return RawChart(
        provider=PROVIDER_NAME,
        bodies=bodies,
        houses=[RawHouse(h.house, h.degree) for h in houses_dto.output.houses],
        aspects=[
            RawAspect(
                a.planet_1.en,
                a.planet_2.en,
                a.aspect.en,
                _orb(
                    positions.get(_key(a.planet_1.en)),
                    positions.get(_key(a.planet_2.en)),
                    a.aspect.en,
                ),
            )
            for a in aspects_dto.output
        ],
        angles=angles,
    )


class FreeAstrologyProvider:
    """`ProviderClient` Free Astrology API (clé `x-api-key`)."""

    name = PROVIDER_NAME
    requires_coordinate = True

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"Content-Type": "application/json", "x-api-key": api_key}
        self._client = make_http_client(timeout_s, headers=headers, transport=transport)

    def _post(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        return request_json(
            self._client, "POST", f"{self.base_url}/western/{endpoint}", PROVIDER_NAME, json=body
        )

    def fetch_chart(self, request: ProviderRequest) -> RawChart:
        """Interroge planètes, maisons et aspects puis fusionne les réponses."""
        body = build_payload(request)
        return decode_response(
            self._post("planets", body), self._post("houses", body), self._post("aspects", body)
        )
