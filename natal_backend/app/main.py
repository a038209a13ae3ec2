"""
Application principale FastAPI.

Ce module assemble les composants du service de thèmes natals : logging, middlewares,
gestionnaires d'erreurs, routes et métriques.

Responsabilités du module:
- Initialiser le logging structuré
- Construire l'application FastAPI avec son titre/debug
- Ajouter les middlewares (request id, timing, métriques)
- Monter les routers (santé, thèmes, métriques)
"""

from __future__ import annotations

from fastapi import FastAPI

from natal_backend.api.errors import install_error_handlers
from natal_backend.api.routes_charts import router as charts_router
from natal_backend.api.routes_health import router as health_router
from natal_backend.app.metrics import PrometheusMiddleware, metrics_router
from natal_backend.core.container import container
from natal_backend.core.logging import setup_logging
from natal_backend.middlewares.request_id import RequestIDMiddleware
from natal_backend.middlewares.timing import TimingMiddleware


def create_app() -> FastAPI:
    """
    Construit et retourne l'application FastAPI prête à l'usage.

    Étapes:
    - Configure le logging structuré (structlog)
    - Lit les paramètres d'exécution
    - Ajoute les middlewares de traçabilité et de mesure
    - Installe l'enveloppe d'erreurs et publie les routes
    """
    settings = container.settings
    setup_logging(app_env=settings.APP_ENV)
    app = FastAPI(title=settings.APP_NAME, debug=settings.APP_DEBUG)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(TimingMiddleware)
    # ajouté en dernier: s'exécute en premier, l'identifiant est lié avant tout log
    app.add_middleware(RequestIDMiddleware)
    install_error_handlers(app)
    app.include_router(health_router)
    app.include_router(charts_router)
    app.include_router(metrics_router)
    return app


app = create_app()
