"""Fournisseur Prokerala (`GET /astrology/natal-planet-position`, OAuth2 client credentials).

Particularités du format:
- requête en paramètres d'URL (`profile[datetime]` ISO-8601 avec décalage, `profile[coordinates]`
  "lat,lon", `settings[house_system]`);
- `status` booléen ou chaîne ("ok", "success");
- cuspides dans `houses[].start_cusp.longitude`, angles dans une liste séparée.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from natal_backend.domain.entities import HouseSystem
from natal_backend.domain.errors import ProviderUnavailableError
from natal_backend.domain.raw_chart import RawAngle, RawAspect, RawBody, RawChart, RawHouse
from natal_backend.domain.request_normalizer import ProviderRequest
from natal_backend.infra.providers.base import make_http_client, request_json, schema_error

PROVIDER_NAME = "prokerala"
DEFAULT_BASE_URL = "https://api.prokerala.com/v2"
DEFAULT_TOKEN_URL = "https://api.prokerala.com/token"
TROPICAL_AYANAMSA = "1"
# marge avant expiration du jeton
TOKEN_EXPIRY_MARGIN = timedelta(seconds=60)
_SUCCESS_STATUSES = {"ok", "success", "true"}

HOUSE_SYSTEM_NAMES: dict[HouseSystem, str] = {
    HouseSystem.PLACIDUS: "placidus",
    HouseSystem.KOCH: "koch",
    HouseSystem.WHOLE_SIGN: "whole-sign",
    HouseSystem.EQUAL: "equal",
    HouseSystem.CAMPANUS: "campanus",
    HouseSystem.REGIOMONTANUS: "regiomontanus",
    HouseSystem.PORPHYRY: "porphyry",
    HouseSystem.TOPOCENTRIC: "topocentric",
    HouseSystem.ALCABITIUS: "alcabitus",
    HouseSystem.MORINUS: "morinus",
}


class _DTO(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ProkeralaNamed(_DTO):
    id: int | None = None
    name: str


class ProkeralaCusp(_DTO):
    longitude: float | None = None
    degree: float | None = None


class ProkeralaHouse(_DTO):
    id: int | None = None
    number: int
    start_cusp: ProkeralaCusp
    end_cusp: ProkeralaCusp | None = None


class ProkeralaPlanetPosition(_DTO):
    id: int | None = None
    name: str
    longitude: float | None = None
    degree: float | None = None
    is_retrograde: bool | str | None = None
    house_number: int | None = None


class ProkeralaAspect(_DTO):
    planet_one: ProkeralaNamed
    planet_two: ProkeralaNamed
    aspect: ProkeralaNamed
    orb: float | None = None


class ProkeralaChartData(_DTO):
    houses: list[ProkeralaHouse] = Field(default_factory=list)
    planet_positions: list[ProkeralaPlanetPosition] = Field(default_factory=list)
    angles: list[ProkeralaPlanetPosition] = Field(default_factory=list)
    aspects: list[ProkeralaAspect] = Field(default_factory=list)


class ProkeralaChartResponse(_DTO):
    status: bool | str | None = None
    message: str | None = None
    data: ProkeralaChartData | None = None

    @property
    def is_success(self) -> bool:
        """Statut booléen, ou chaîne "ok"/"success"/"true" (sans casse)."""
        if isinstance(self.status, bool):
            return self.status
        return (self.status or "").strip().lower() in _SUCCESS_STATUSES


def build_query_params(request: ProviderRequest) -> list[tuple[str, str]]:
    """Paramètres d'URL Prokerala pour une requête normalisée."""
    params = [
        ("profile[datetime]", request.local_datetime().isoformat()),
        ("profile[coordinates]", f"{request.latitude:.6f},{request.longitude:.6f}"),
        ("profile[timezone]", request.utc_offset_label()),
        ("settings[ayanamsa]", TROPICAL_AYANAMSA),
        ("settings[house_system]", HOUSE_SYSTEM_NAMES[request.house_system]),
        ("settings[language]", "en"),
    ]
    if request.location:
        params.append(("profile[place]", request.location))
    return params


def decode_response(payload: dict[str, Any]) -> RawChart:
    """Valide la réponse Prokerala et la convertit en `RawChart`.

    Un statut d'échec devient `ProviderUnavailableError` (message du fournisseur).
    """
    try:
        dto = ProkeralaChartResponse.model_validate(payload)
    except ValidationError as err:
        raise schema_error(PROVIDER_NAME, err) from err
    if not dto.is_success or dto.data is None:
        raise ProviderUnavailableError(PROVIDER_NAME, dto.message or f"status {dto.status!r}")
    data = dto.data
    return RawChart(
        provider=PROVIDER_NAME,
        bodies=[
            RawBody(name=p.name, longitude=p.longitude, retrograde=p.is_retrograde)
            for p in data.planet_positions
        ],
        houses=[RawHouse(h.number, h.start_cusp.longitude) for h in data.houses],
        aspects=[
            RawAspect(a.planet_one.name, a.planet_two.name, a.aspect.name, a.orb)
            for a in data.aspects
        ],
        angles=[RawAngle(a.name, a.longitude) for a in data.angles],
    )


class ProkeralaProvider:
    """`ProviderClient` Prokerala avec jeton OAuth2 mis en cache jusqu'à expiration."""

    name = PROVIDER_NAME
    requires_coordinate = True

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str = DEFAULT_BASE_URL,
        token_url: str = DEFAULT_TOKEN_URL,
        timeout_s: float = 10.0,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_url = token_url
        self._credentials = {"client_id": client_id, "client_secret": client_secret}
        self._client = make_http_client(timeout_s, transport=transport)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._token: str | None = None
        self._token_expiry: datetime | None = None
        self._log = structlog.get_logger(__name__).bind(component="prokerala_provider")

    def _access_token(self) -> str:
        now = self._clock()
        if self._token and self._token_expiry and now < self._token_expiry:
            return self._token
        body = request_json(
            self._client,
            "POST",
            self.token_url,
            PROVIDER_NAME,
            data={"grant_type": "client_credentials", **self._credentials},
        )
        token = body.get("access_token")
        if not token or str(body.get("token_type", "")).lower() != "bearer":
            raise ProviderUnavailableError(PROVIDER_NAME, "token endpoint returned no bearer token")
        expires_in = int(body.get("expires_in", 0))
        self._token = token
        self._token_expiry = now + timedelta(seconds=expires_in) - TOKEN_EXPIRY_MARGIN
        self._log.debug("prokerala_token_refreshed", expires_in=expires_in)
        return token

    def fetch_chart(self, request: ProviderRequest) -> RawChart:
        """Appelle l'endpoint de positions natales et décode la réponse."""
        headers = {"Authorization": f"Bearer {self._access_token()}"}
        payload = request_json(
            self._client,
            "GET",
            f"{self.base_url}/astrology/natal-planet-position",
            PROVIDER_NAME,
            params=build_query_params(request),
            headers=headers,
        )
        return decode_response(payload)
