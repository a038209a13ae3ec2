"""Définition et chargement des paramètres de configuration applicative.

Objectif du module
------------------
- Centraliser les paramètres (env/.env) via Pydantic Settings
- Résoudre le fichier `.env` à utiliser selon la stratégie: ENV_FILE > .env.{APP_ENV} > .env
"""

import os
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Détermination du fichier .env à utiliser avec priorité:
# 1) ENV_FILE (chemin explicite)
# 2) .env.{APP_ENV} si présent
# 3) .env (défaut)
_cwd = Path.cwd()
_env_file_from_env = os.getenv("ENV_FILE")
if _env_file_from_env:
    _ENV_FILE_PATH = _env_file_from_env
else:
    _app_env = os.getenv("APP_ENV", "dev")
    _candidate_specific = _cwd / f".env.{_app_env}"
    _candidate_default = _cwd / ".env"
    if _candidate_specific.exists():
        _ENV_FILE_PATH = _candidate_specific
    else:
        _ENV_FILE_PATH = _candidate_default


class Settings(BaseSettings):
    """Modèle de configuration chargé depuis l'environnement et .env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
    )
    APP_NAME: str = "natal-backend"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = True

    # Stockage du cache de thèmes
    CACHE_BACKEND: Literal["memory", "redis", "sql"] = "memory"
    REDIS_URL: str | None = None
    REQUIRE_REDIS: bool = False
    DATABASE_URL: str | None = None
    CHART_CACHE_MAX_AGE_DAYS: int = 30

    # Calcul du thème
    DEFAULT_HOUSE_SYSTEM: str = "placidus"
    RULERSHIP_SCHEME: str = "traditional"  # "traditional" | "modern"
    ASPECT_LIMIT: int | None = 20  # aspects les plus serrés conservés; None = tous

    # Fournisseur d'éphémérides
    PROVIDER: Literal["fake", "astrology_api", "prokerala", "free_astrology"] = "fake"
    PROVIDER_BASE_URL: str | None = None  # défaut propre à chaque fournisseur
    PROVIDER_API_KEY: str | None = None
    PROVIDER_CLIENT_ID: str | None = None  # OAuth2 (prokerala)
    PROVIDER_CLIENT_SECRET: str | None = None
    PROVIDER_TIMEOUT_S: float = 10.0

    # Images de roue (références opaques, rendu externe)
    IMAGE_CACHE_DIR: str = "./var/chart_images"


def get_settings() -> Settings:
    """Construit et retourne la configuration de l'application."""
    return Settings()
