"""
Conteneur d'injection de dépendances et configuration application.

Instancie une seule fois les composants centraux (settings, stockage du cache, cache de thèmes,
fournisseur d'éphémérides, cache d'images, service) et expose un singleton `container` utilisé
par le reste de l'application.
"""

from datetime import timedelta

import redis
import structlog

from natal_backend.core.settings import Settings, get_settings
from natal_backend.domain.chart_cache import ChartCache
from natal_backend.domain.entities import HouseSystem
from natal_backend.domain.errors import ConfigurationError
from natal_backend.domain.services import NatalChartService
from natal_backend.infra.image_cache import ImageCache
from natal_backend.infra.providers import astrology_api, free_astrology, prokerala
from natal_backend.infra.providers.fake_deterministic import FakeDeterministicProvider
from natal_backend.infra.repo.db import get_engine
from natal_backend.infra.repo.sql_chart_store import SqlChartStore
from natal_backend.infra.repositories import InMemoryChartStore, RedisChartStore


class Container:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._log = structlog.get_logger(__name__).bind(component="container")
        self.default_house_system = HouseSystem.parse(self.settings.DEFAULT_HOUSE_SYSTEM)
        self.chart_store = self._build_store()
        self.chart_cache = ChartCache(
            self.chart_store, max_age=timedelta(days=self.settings.CHART_CACHE_MAX_AGE_DAYS)
        )
        self.provider = self._build_provider()
        self.image_cache = ImageCache(self.settings.IMAGE_CACHE_DIR)
        self.chart_service = NatalChartService(
            self.provider,
            self.chart_cache,
            self.image_cache,
            rulership_scheme=self.settings.RULERSHIP_SCHEME,
            aspect_limit=self.settings.ASPECT_LIMIT,
        )

    def _build_store(self):
        backend = self.settings.CACHE_BACKEND
        if backend == "sql":
            url = self.settings.DATABASE_URL
            self.storage_backend = "sql"
            # SQLite local: schéma créé à la volée; sinon via Alembic
            return SqlChartStore(get_engine(url), create_schema=not url or url.startswith("sqlite"))
        if backend == "redis":
            return self._build_redis_store()
        self.storage_backend = "memory"
        return InMemoryChartStore()

    def _build_redis_store(self):
        require = self.settings.REQUIRE_REDIS
        if not self.settings.REDIS_URL:
            if require:
                raise RuntimeError("Redis required but REDIS_URL not set")
            self.storage_backend = "memory-fallback"
            return InMemoryChartStore()
        try:
            store = RedisChartStore(self.settings.REDIS_URL)
            store.client.ping()
        except redis.RedisError as err:
            if require:
                raise RuntimeError("Redis required but unavailable") from err
            self._log.warning("redis_unavailable_memory_fallback", error=str(err))
            self.storage_backend = "memory-fallback"
            return InMemoryChartStore()
        self.storage_backend = "redis"
        return store

    def _build_provider(self):
        s = self.settings
        if s.PROVIDER == "astrology_api":
            client = astrology_api.HttpAstrologyAPIClient(
                s.PROVIDER_BASE_URL or astrology_api.DEFAULT_BASE_URL,
                api_key=s.PROVIDER_API_KEY,
                timeout_s=s.PROVIDER_TIMEOUT_S,
            )
            return astrology_api.AstrologyAPIProvider(client)
        if s.PROVIDER == "prokerala":
            if not s.PROVIDER_CLIENT_ID or not s.PROVIDER_CLIENT_SECRET:
                raise ConfigurationError("prokerala credentials", None)
            return prokerala.ProkeralaProvider(
                s.PROVIDER_CLIENT_ID,
                s.PROVIDER_CLIENT_SECRET,
                base_url=s.PROVIDER_BASE_URL or prokerala.DEFAULT_BASE_URL,
                timeout_s=s.PROVIDER_TIMEOUT_S,
            )
        if s.PROVIDER == "free_astrology":
            if not s.PROVIDER_API_KEY:
                raise ConfigurationError("free_astrology api key", None)
            return free_astrology.FreeAstrologyProvider(
                s.PROVIDER_API_KEY,
                base_url=s.PROVIDER_BASE_URL or free_astrology.DEFAULT_BASE_URL,
                timeout_s=s.PROVIDER_TIMEOUT_S,
            )
        return FakeDeterministicProvider()


container = Container()
