"""Cache persistant des thèmes natals.

Le cache possède les `CacheRecord`: il les encode (`cache_codec`), choisit l'identifiant lors d'un
upsert et applique la règle de péremption (30 jours). Le stockage physique est délégué à un
`ChartStore` (mémoire, Redis, SQL) qui n'expose que des octets opaques.

Concurrence
-----------
- `save` et `evict_stale` s'exécutent sous `store.write_lock()`: deux sauvegardes pour le même
  sujet sont sérialisées, la dernière l'emporte.
- Chaque `insert` du store est atomique; une lecture décode un instantané et ne voit jamais un
  enregistrement à moitié écrit.
- La péremption est réévaluée sous le verrou: un enregistrement réécrit entre-temps n'est pas
  supprimé.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from contextlib import AbstractContextManager
from datetime import UTC, datetime, timedelta
from typing import Protocol

import structlog

from natal_backend.app.metrics import (
    CHART_CACHE_ERRORS,
    CHART_CACHE_EVICTIONS,
    CHART_CACHE_HITS,
    CHART_CACHE_MISSES,
)
from natal_backend.domain.cache_codec import decode_record, encode_record
from natal_backend.domain.entities import BirthData, CacheRecord, HouseSystem, NatalChart
from natal_backend.domain.errors import PersistenceError
from natal_backend.domain.fingerprint import birth_data_matches, fingerprint

MAX_CACHE_AGE = timedelta(days=30)


class ChartStore(Protocol):
    """Stockage d'octets indexés par identifiant d'enregistrement.

    Les implémentations convertissent les erreurs de leur moteur en `PersistenceError`.
    """

    def insert(self, record_id: str, payload: bytes) -> None:
        """Insère ou remplace l'enregistrement `record_id`."""
        ...

    def fetch_all(self) -> dict[str, bytes]:
        """Retourne tous les enregistrements (dernières écritures acquittées)."""
        ...

    def delete(self, record_id: str) -> None:
        """Supprime un enregistrement (sans effet s'il est absent)."""
        ...

    def write_lock(self) -> AbstractContextManager:
        """Verrou exclusif des écrivains."""
        ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(moment: datetime) -> datetime:
    """Un datetime naïf est interprété comme UTC."""
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=UTC)


class ChartCache:
    """Cache de thèmes avec recherche tolérante et péremption.

    Paramètres:
    - store: stockage sous-jacent (`ChartStore`).
    - max_age: fenêtre de rétention (30 jours par défaut).
    - clock: horloge injectable, retourne un datetime UTC avec fuseau.
    """

    def __init__(
        self,
        store: ChartStore,
        max_age: timedelta = MAX_CACHE_AGE,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.max_age = max_age
        self.clock = clock or _utcnow
        self._log = structlog.get_logger(__name__).bind(component="chart_cache")

    # Lecture

    def _records(self) -> list[CacheRecord]:
        """Décode tous les enregistrements; les illisibles sont ignorés."""
        records: list[CacheRecord] = []
        for record_id, payload in self.store.fetch_all().items():
            try:
                records.append(decode_record(payload))
            except PersistenceError as err:
                CHART_CACHE_ERRORS.labels("decode").inc()
                self._log.warning("chart_cache_record_skipped", record_id=record_id, error=str(err))
        return records

    def _matching(self, birth: BirthData, system: HouseSystem) -> CacheRecord | None:
        matches = [
            r
            for r in self._records()
            if r.house_system == system and birth_data_matches(r.birth, birth)
        ]
        if not matches:
            return None
        return max(matches, key=lambda r: r.generated_at)

    def find_record(
        self, birth: BirthData, house_system: str | HouseSystem = HouseSystem.PLACIDUS
    ) -> CacheRecord | None:
        """Enregistrement correspondant aux données de naissance, périmé ou non.

        Une panne du stockage se dégrade en absence de résultat.
        """
        system = HouseSystem.parse(house_system)
        try:
            return self._matching(birth, system)
        except PersistenceError as err:
            CHART_CACHE_ERRORS.labels("find").inc()
            self._log.error("chart_cache_find_failed", error=str(err))
            return None

    def find(
        self, birth: BirthData, house_system: str | HouseSystem = HouseSystem.PLACIDUS
    ) -> NatalChart | None:
        """Thème en cache pour ces données de naissance, seulement s'il n'est pas périmé."""
        record = self.find_record(birth, house_system)
        if record is None:
            CHART_CACHE_MISSES.labels("absent").inc()
            self._log.debug("chart_cache_miss", reason="absent")
            return None
        if self.is_stale(record):
            CHART_CACHE_MISSES.labels("stale").inc()
            self._log.info("chart_cache_miss", reason="stale", record_id=record.id)
            return None
        CHART_CACHE_HITS.inc()
        self._log.debug("chart_cache_hit", record_id=record.id)
        return record.chart

    def load(self, chart_id: str) -> NatalChart | None:
        """Thème par identifiant de thème (ou d'enregistrement), quel que soit son âge."""
        try:
            records = self._records()
        except PersistenceError as err:
            CHART_CACHE_ERRORS.labels("load").inc()
            self._log.error("chart_cache_load_failed", chart_id=chart_id, error=str(err))
            return None
        for record in records:
            if chart_id in (record.id, record.chart.id):
                return record.chart
        return None

    # Écriture

    def save(self, chart: NatalChart, birth: BirthData | None = None) -> CacheRecord:
        """Upsert du thème: remplace l'enregistrement du même sujet s'il existe.

        Paramètres:
        - chart: thème à mémoriser.
        - birth: données de naissance d'origine (par défaut, l'instantané du thème).

        Lève `PersistenceError` si l'encodage ou le stockage échoue.
        """
        birth = birth or chart.birth
        with self.store.write_lock():
            existing = self._matching(birth, chart.house_system)
            record = CacheRecord(
                id=existing.id if existing else str(uuid.uuid4()),
                fingerprint=fingerprint(birth, chart.house_system),
                house_system=chart.house_system,
                birth=birth,
                chart=chart,
                generated_at=self.clock(),
            )
            self.store.insert(record.id, encode_record(record))
        self._log.info(
            "chart_cache_saved",
            record_id=record.id,
            chart_id=chart.id,
            replaced=existing is not None,
        )
        return record

    # Péremption

    def is_stale(self, record: CacheRecord, reference_time: datetime | None = None) -> bool:
        """Vrai si l'enregistrement a dépassé la fenêtre de rétention."""
        reference = _as_utc(reference_time or self.clock())
        return reference - _as_utc(record.generated_at) > self.max_age

    def evict_stale(self, reference_time: datetime | None = None) -> int:
        """Supprime les enregistrements périmés et retourne leur nombre.

        Idempotent: un second appel avec la même référence ne supprime rien. Une référence
        naïve est lue en UTC.
        """
        reference = _as_utc(reference_time or self.clock())
        with self.store.write_lock():
            stale = [r for r in self._records() if self.is_stale(r, reference)]
            for record in stale:
                self.store.delete(record.id)
        if stale:
            CHART_CACHE_EVICTIONS.inc(len(stale))
        self._log.info("chart_cache_evicted", count=len(stale), reference=reference.isoformat())
        return len(stale)
