"""
Métriques Prometheus pour l'application.

Ce module définit les métriques Prometheus du service de thèmes natals (cache, fournisseur,
mapping) et expose `/metrics` ainsi qu'un middleware de mesure HTTP.
"""

import time

from fastapi import APIRouter, Request
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

metrics_router = APIRouter()

REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "route", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "Latency of HTTP requests", ["route"]
)

# Cache de thèmes
CHART_CACHE_HITS = Counter(
    "chart_cache_hits_total",
    "Chart cache lookups served from a fresh record",
)
CHART_CACHE_MISSES = Counter(
    "chart_cache_misses_total",
    "Chart cache lookups without a usable record",
    ["reason"],
)
CHART_CACHE_EVICTIONS = Counter(
    "chart_cache_evictions_total",
    "Stale chart records deleted from the cache",
)
CHART_CACHE_ERRORS = Counter(
    "chart_cache_errors_total",
    "Chart cache store or codec failures",
    ["op"],
)

# Fournisseur d'éphémérides et mapping
PROVIDER_REQUESTS = Counter(
    "provider_requests_total",
    "Ephemeris provider requests",
    ["provider"],
)
PROVIDER_FAILURES = Counter(
    "provider_failures_total",
    "Ephemeris provider requests that failed",
    ["provider"],
)
PROVIDER_LATENCY = Histogram(
    "provider_latency_seconds",
    "Latency of ephemeris provider requests",
    ["provider"],
)
MAPPING_ERRORS = Counter(
    "chart_mapping_errors_total",
    "Provider responses rejected by the chart mapper",
    ["provider", "field"],
)


@metrics_router.get("/metrics")
def metrics():
    """
    Expose les métriques Prometheus au format texte.

    Returns:
        Response: Réponse HTTP contenant les métriques au format Prometheus.
    """
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware Prometheus pour mesurer les métriques HTTP.

    Collecte les métriques de comptage des requêtes et de latence par route pour l'exposition
    Prometheus.
    """

    async def dispatch(self, request: Request, call_next):
        """
        Traite une requête HTTP et collecte les métriques.

        Args:
            request: Requête HTTP entrante.
            call_next: Fonction pour appeler le middleware suivant.

        Returns:
            Response: Réponse HTTP avec métriques collectées.
        """
        start = time.perf_counter()
        response: Response = await call_next(request)
        # gabarit de route ("/charts/{chart_id}") plutôt que le chemin brut
        route = getattr(request.scope.get("route"), "path", None) or request.scope.get(
            "path", "unknown"
        )
        REQUEST_COUNT.labels(request.method, route, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(route).observe(time.perf_counter() - start)
        return response
