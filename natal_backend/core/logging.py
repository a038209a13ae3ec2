"""Configuration de logging basée sur structlog.

Objectif du module
------------------
- Logs structurés lisibles en développement (rendu console).
- Logs JSON, une ligne par événement, hors développement (collecte centralisée).
- Niveau minimal dérivé de l'environnement (DEBUG en dev, INFO sinon).
"""

import logging
import sys

import structlog

_DEV_ENVS = {"dev", "local", "test"}


def setup_logging(level: int | None = None, app_env: str = "dev") -> None:
    """Configure structlog pour l'application.

    Paramètres:
    - level: niveau minimal; par défaut DEBUG en dev et INFO ailleurs.
    - app_env: environnement d'exécution (`APP_ENV`), choisit le rendu console ou JSON.
    """
    dev = app_env.lower() in _DEV_ENVS
    if level is None:
        level = logging.DEBUG if dev else logging.INFO
    renderer = structlog.dev.ConsoleRenderer() if dev else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="ISO", utc=True),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )
