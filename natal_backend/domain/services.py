import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from natal_backend.app.metrics import (
    MAPPING_ERRORS,
    PROVIDER_FAILURES,
    PROVIDER_LATENCY,
    PROVIDER_REQUESTS,
)
from natal_backend.domain.chart_cache import ChartCache
from natal_backend.domain.entities import BirthData, ChartImageRef, HouseSystem, NatalChart
from natal_backend.domain.errors import (
    ConfigurationError,
    MappingError,
    PersistenceError,
    ProviderUnavailableError,
)
from natal_backend.domain.mapper import map_chart
from natal_backend.domain.request_normalizer import normalize_request, parse_house_system
from natal_backend.domain.rulership import check_scheme


class NatalChartService:
    """Service métier de génération et de consultation des thèmes natals.

    Responsabilités:
    - Servir un thème depuis le cache quand il est frais.
    - Sinon normaliser la requête, interroger le fournisseur, mapper et mettre en cache.
    - Se replier sur un thème en cache (même périmé) si le fournisseur est indisponible.
    - Attacher une image de roue déjà rendue à un thème.
    """

    def __init__(
        self,
        provider,
        cache: ChartCache,
        image_cache=None,
        *,
        rulership_scheme: str = "traditional",
        aspect_limit: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialise le service avec ses dépendances.

        Paramètres:
        - provider: fournisseur d'éphémérides (`ProviderClient`).
        - cache: cache de thèmes (`ChartCache`), construit une seule fois par le conteneur.
        - image_cache: dépôt d'images (`ImageCache`), optionnel.
        - rulership_scheme: schéma de maîtrises ("traditional" | "modern").
        - aspect_limit: nombre maximal d'aspects par thème.
        - clock: horloge UTC injectable pour `computed_at`.
        """
        self.provider = provider
        self.cache = cache
        self.images = image_cache
        self.rulership_scheme = check_scheme(rulership_scheme)
        self.aspect_limit = aspect_limit
        self.clock = clock or (lambda: datetime.now(UTC))
        self._log = structlog.get_logger(__name__).bind(component="natal_chart_service")

    def generate_chart(
        self,
        birth: BirthData,
        house_system: str | HouseSystem = HouseSystem.PLACIDUS,
        force_refresh: bool = False,
    ) -> NatalChart:
        """Retourne le thème natal des données de naissance.

        Démarche:
        - Valide le système de maisons (`ConfigurationError`).
        - Sauf `force_refresh`, renvoie le thème en cache s'il est frais.
        - Normalise la requête (`MissingCoordinateError` si le fournisseur exige une coordonnée).
        - Interroge le fournisseur; s'il est indisponible, renvoie le thème en cache même périmé,
          sinon propage `ProviderUnavailableError`.
        - Mappe la réponse (`MappingError` propagée, rien n'est mis en cache).
        - Met le thème en cache; un échec de persistance est journalisé sans bloquer la réponse.
        """
        system = parse_house_system(house_system)
        if not force_refresh:
            cached = self.cache.find(birth, system)
            if cached is not None:
                return cached

        request = normalize_request(
            birth,
            system,
            require_coordinate=self.provider.requires_coordinate,
            provider=self.provider.name,
        )

        PROVIDER_REQUESTS.labels(self.provider.name).inc()
        start = time.perf_counter()
        try:
            raw = self.provider.fetch_chart(request)
        except ProviderUnavailableError as err:
            PROVIDER_FAILURES.labels(self.provider.name).inc()
            record = self.cache.find_record(birth, system)
            if record is None:
                self._log.error("provider_unavailable", provider=err.provider, reason=err.reason)
                raise
            self._log.warning(
                "provider_unavailable_cache_fallback",
                provider=err.provider,
                record_id=record.id,
                stale=self.cache.is_stale(record),
            )
            return record.chart
        finally:
            PROVIDER_LATENCY.labels(self.provider.name).observe(time.perf_counter() - start)

        try:
            chart = map_chart(
                raw,
                birth,
                system,
                computed_at=self.clock(),
                rulership_scheme=self.rulership_scheme,
                aspect_limit=self.aspect_limit,
            )
        except MappingError as err:
            MAPPING_ERRORS.labels(self.provider.name, err.field).inc()
            self._log.error("chart_mapping_failed", provider=raw.provider, field=err.field)
            raise

        try:
            self.cache.save(chart, birth)
        except PersistenceError as err:
            self._log.error("chart_cache_save_failed", chart_id=chart.id, error=str(err))
        return chart

    def get_cached_chart(
        self, birth: BirthData, house_system: str | HouseSystem = HouseSystem.PLACIDUS
    ) -> NatalChart | None:
        """Thème frais en cache, ou None."""
        return self.cache.find(birth, house_system)

    def get_chart(self, chart_id: str) -> NatalChart:
        """Charge un thème par identifiant (erreur si absent)."""
        chart = self.cache.load(chart_id)
        if chart is None:
            raise KeyError("chart_not_found")
        return chart

    def clear_old_charts(self, reference_time: datetime | None = None) -> int:
        """Évince les thèmes périmés et retourne leur nombre."""
        return self.cache.evict_stale(reference_time)

    # Images

    def _require_images(self):
        if self.images is None:
            raise ConfigurationError("image cache", "disabled")
        return self.images

    def attach_image(self, chart: NatalChart, data: bytes, fmt: str = "svg") -> NatalChart:
        """Stocke une image de roue déjà rendue et l'attache au thème (ré-enregistré en cache).

        Lève `PersistenceError` si l'image ou le thème ne peuvent être enregistrés.
        """
        images = self._require_images()
        file_id = uuid.uuid4().hex
        images.save_image(data, file_id, fmt)
        updated = chart.with_image(ChartImageRef(file_id=file_id, format=fmt))
        try:
            self.cache.save(updated, updated.birth)
        except PersistenceError:
            # le thème en cache référence toujours l'ancienne image
            images.delete_image(file_id, fmt)
            raise
        if chart.image is not None:
            images.delete_image(chart.image.file_id, chart.image.format)
        return updated

    def load_chart_image(self, chart: NatalChart) -> bytes:
        """Octets de l'image attachée au thème (`KeyError` si aucune)."""
        if chart.image is None:
            raise KeyError("image_not_found")
        return self._require_images().load_image(chart.image.file_id, chart.image.format)

    def has_chart_image(self, chart: NatalChart) -> bool:
        """Vrai si l'image du thème est présente dans le cache d'images."""
        if chart.image is None or self.images is None:
            return False
        return self.images.image_exists(chart.image.file_id, chart.image.format)

    def image_cache_size(self) -> int:
        """Taille du cache d'images en octets (0 si désactivé)."""
        return self.images.cache_size() if self.images is not None else 0
