"""Middleware Starlette mesurant la durée de traitement des requêtes.

Ajoute l'en-tête `X-Process-Time-ms` et journalise les requêtes lentes.
"""

import time
from collections.abc import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

log = structlog.get_logger(__name__)


class TimingMiddleware(BaseHTTPMiddleware):
    """Mesure la durée de chaque requête HTTP et l'ajoute en en-tête de réponse."""

    def __init__(
        self,
        app: ASGIApp,
        header_name: str = "X-Process-Time-ms",
        slow_threshold_ms: int = 2000,
    ) -> None:
        super().__init__(app)
        self.header_name = header_name
        self.slow_threshold_ms = slow_threshold_ms

    async def dispatch(self, request, call_next: Callable):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = int((time.perf_counter() - start) * 1000)
        response.headers[self.header_name] = str(duration_ms)
        if duration_ms >= self.slow_threshold_ms:
            # typiquement un appel fournisseur lent (cache manqué)
            log.warning(
                "slow_request",
                path=request.url.path,
                method=request.method,
                duration_ms=duration_ms,
            )
        return response
