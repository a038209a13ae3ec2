"""Interface commune des fournisseurs d'éphémérides.

Un fournisseur reçoit une `ProviderRequest` normalisée et renvoie un `RawChart`. Les erreurs de
transport (réseau, HTTP, statut applicatif) deviennent `ProviderUnavailableError`; une réponse
qui ne respecte pas le schéma du fournisseur devient `MappingError`.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
import structlog
from pydantic import ValidationError

from natal_backend.core.http_constants import (
    HTTP_CLIENT_ERROR_MIN,
    HTTP_SERVER_ERROR_MAX,
    HTTP_TOO_MANY_REQUESTS,
)
from natal_backend.domain.errors import MappingError, ProviderUnavailableError
from natal_backend.domain.raw_chart import RawChart
from natal_backend.domain.request_normalizer import ProviderRequest

log = structlog.get_logger(__name__)


class ProviderClient(Protocol):
    """Contrat minimal d'un fournisseur d'éphémérides."""

    name: str
    requires_coordinate: bool

    def fetch_chart(self, request: ProviderRequest) -> RawChart:
        """Retourne la réponse du fournisseur ramenée à la forme `RawChart`."""
        ...


def schema_error(provider: str, err: ValidationError) -> MappingError:
    """Convertit une erreur de validation de DTO en `MappingError` (premier champ fautif)."""
    errors = err.errors()
    loc = ".".join(str(p) for p in errors[0].get("loc", ())) if errors else ""
    return MappingError(loc or "response", f"{provider} response does not match schema: {err}")


def request_json(
    client: httpx.Client,
    method: str,
    url: str,
    provider: str,
    **kwargs: Any,
) -> dict[str, Any]:
    """Exécute une requête HTTP et retourne le corps JSON (objet).

    - erreur de transport, 429, 4xx ou 5xx: `ProviderUnavailableError`;
    - corps non JSON ou non objet: `MappingError("response")`.
    """
    try:
        resp = client.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        log.warning("provider_transport_error", provider=provider, error=str(exc))
        raise ProviderUnavailableError(provider, str(exc)) from exc
    if resp.status_code == HTTP_TOO_MANY_REQUESTS:
        log.warning("provider_rate_limited", provider=provider)
        raise ProviderUnavailableError(provider, "rate limited")
    if HTTP_CLIENT_ERROR_MIN <= resp.status_code < HTTP_SERVER_ERROR_MAX:
        log.warning("provider_http_error", provider=provider, status=resp.status_code)
        raise ProviderUnavailableError(provider, f"http {resp.status_code}")
    try:
        data = resp.json()
    except ValueError as exc:
        raise MappingError("response", f"{provider} returned a non-JSON body") from exc
    if not isinstance(data, dict):
        raise MappingError("response", f"{provider} returned a non-object body")
    return data


def make_http_client(
    timeout_s: float,
    headers: dict[str, str] | None = None,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Client httpx réutilisable (timeouts par phase, pool borné)."""
    timeout = httpx.Timeout(connect=timeout_s, read=timeout_s, write=timeout_s, pool=timeout_s)
    limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
    return httpx.Client(headers=headers, timeout=timeout, limits=limits, transport=transport)
