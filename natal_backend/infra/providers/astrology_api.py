"""Fournisseur api.astrology-api.io (corps JSON, positions absolues, angles dans `subject_data`).

Contenu
-------
- DTO pydantic de la réponse `POST /charts/natal`;
- `build_payload`: requête normalisée -> corps JSON;
- `decode_response`: JSON -> `RawChart`;
- `HttpAstrologyAPIClient`: transport httpx (timeouts, pool, erreurs typées);
- `AstrologyAPIProvider`: assemble le tout derrière `ProviderClient`.
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from natal_backend.domain.entities import HouseSystem
from natal_backend.domain.raw_chart import RawAngle, RawAspect, RawBody, RawChart, RawHouse
from natal_backend.domain.request_normalizer import ProviderRequest
from natal_backend.infra.providers.base import make_http_client, request_json, schema_error

PROVIDER_NAME = "astrology_api"
DEFAULT_BASE_URL = "https://api.astrology-api.io/api/v3"

# Codes Swiss Ephemeris attendus par le fournisseur
HOUSE_SYSTEM_CODES: dict[HouseSystem, str] = {
    HouseSystem.PLACIDUS: "P",
    HouseSystem.KOCH: "K",
    HouseSystem.WHOLE_SIGN: "W",
    HouseSystem.EQUAL: "A",
    HouseSystem.CAMPANUS: "C",
    HouseSystem.REGIOMONTANUS: "R",
    HouseSystem.PORPHYRY: "O",
    HouseSystem.TOPOCENTRIC: "T",
    HouseSystem.ALCABITIUS: "B",
    HouseSystem.MORINUS: "M",
}

DEFAULT_ACTIVE_POINTS = (
    "Sun",
    "Moon",
    "Mercury",
    "Venus",
    "Mars",
    "Jupiter",
    "Saturn",
    "Uranus",
    "Neptune",
    "Pluto",
    "True_Node",
    "Mean_Lilith",
)
PRECISION = 2


class _DTO(BaseModel):
    model_config = ConfigDict(extra="ignore")


class AstrologyAPIPlanetaryPosition(_DTO):
    name: str
    sign: str | None = None
    degree: float | None = None
    absolute_longitude: float | None = None
    house: int | None = None
    is_retrograde: bool | None = None
    speed: float | None = None


class AstrologyAPIHouseCusp(_DTO):
    house: int
    sign: str | None = None
    degree: float | None = None
    absolute_longitude: float | None = None


class AstrologyAPIAspect(_DTO):
    point1: str
    point2: str
    aspect_type: str
    orb: float | None = None


class AstrologyAPIChartData(_DTO):
    planetary_positions: list[AstrologyAPIPlanetaryPosition]
    house_cusps: list[AstrologyAPIHouseCusp] = Field(default_factory=list)
    aspects: list[AstrologyAPIAspect] = Field(default_factory=list)


class AstrologyAPIPoint(_DTO):
    name: str | None = None
    abs_pos: float | None = None


class AstrologyAPISubjectData(_DTO):
    ascendant: AstrologyAPIPoint | None = None
    medium_coeli: AstrologyAPIPoint | None = None


class AstrologyAPINatalChartResponse(_DTO):
    subject_data: AstrologyAPISubjectData = Field(default_factory=AstrologyAPISubjectData)
    chart_data: AstrologyAPIChartData


def build_payload(
    request: ProviderRequest, active_points: tuple[str, ...] = DEFAULT_ACTIVE_POINTS
) -> dict[str, Any]:
    """Corps JSON de `POST /charts/natal` pour une requête normalisée."""
    return {
        "subject": {
            "name": request.name or "Natal chart",
            "birth_data": {
                "year": request.year,
                "month": request.month,
                "day": request.day,
                "hour": request.hour,
                "minute": request.minute,
                "second": request.second,
                "latitude": request.latitude,
                "longitude": request.longitude,
                "timezone": request.timezone,
                "city": request.location,
            },
        },
        "options": {
            "house_system": HOUSE_SYSTEM_CODES[request.house_system],
            "zodiac_type": "Tropic",
            "active_points": list(active_points),
            "precision": PRECISION,
        },
    }


def decode_response(payload: dict[str, Any]) -> RawChart:
    """Valide la réponse du fournisseur et la convertit en `RawChart`."""
    try:
        dto = AstrologyAPINatalChartResponse.model_validate(payload)
    except ValidationError as err:
        raise schema_error(PROVIDER_NAME, err) from err
    data = dto.chart_data
    angles = []
    if dto.subject_data.ascendant is not None:
        angles.append(RawAngle("Ascendant", dto.subject_data.ascendant.abs_pos))
    if dto.subject_data.medium_coeli is not None:
        angles.append(RawAngle("Medium Coeli", dto.subject_data.medium_coeli.abs_pos))
    return RawChart(
        provider=PROVIDER_NAME,
        bodies=[
            RawBody(
                name=p.name,
                longitude=p.absolute_longitude,
                speed=p.speed,
                retrograde=p.is_retrograde,
            )
            for p in data.planetary_positions
        ],
        houses=[RawHouse(h.house, h.absolute_longitude) for h in data.house_cusps],
        aspects=[RawAspect(a.point1, a.point2, a.aspect_type, a.orb) for a in data.aspects],
        angles=angles,
    )


class HttpAstrologyAPIClient:
    """Client HTTP synchrone pour api.astrology-api.io.

    Paramètres:
    - base_url: racine de l'API (ex. `https://api.astrology-api.io/api/v3`).
    - api_key: jeton Bearer optionnel.
    - timeout_s: délai appliqué à chaque phase (connexion, lecture, écriture, pool).
    - transport: transport httpx injectable (tests).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout_s: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = make_http_client(timeout_s, headers=headers, transport=transport)

    def post_natal(self, body: dict[str, Any]) -> dict[str, Any]:
        """Envoie la requête de thème natal et retourne le JSON décodé."""
        url = f"{self.base_url}/charts/natal"
        return request_json(self._client, "POST", url, PROVIDER_NAME, json=body)

    def close(self) -> None:
        """Ferme le pool de connexions."""
        self._client.close()


class AstrologyAPIProvider:
    """`ProviderClient` adossé à api.astrology-api.io."""

    name = PROVIDER_NAME
    requires_coordinate = True

    def __init__(self, client: HttpAstrologyAPIClient):
        self.client = client

    def fetch_chart(self, request: ProviderRequest) -> RawChart:
        """Construit le corps, appelle l'API et décode la réponse."""
        return decode_response(self.client.post_natal(build_payload(request)))
