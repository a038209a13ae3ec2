"""
Stockages du cache de thèmes.

Ce module fournit des implémentations de `ChartStore` en mémoire et Redis. Les enregistrements
sont des octets opaques (encodés par `cache_codec`); les erreurs du moteur deviennent
`PersistenceError`.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

import redis
import structlog

from natal_backend.domain.errors import PersistenceError

LOCK_TIMEOUT_S = 10
LOCK_BLOCKING_TIMEOUT_S = 5


class InMemoryChartStore:
    """
    Stockage de thèmes en mémoire (utilisé pour dev/tests).

    Stocke les enregistrements dans un dict local, non persistant.
    """

    def __init__(self):
        """Initialise une base mémoire vide."""
        self._db: dict[str, bytes] = {}
        self._lock = threading.RLock()

    def insert(self, record_id: str, payload: bytes) -> None:
        """Enregistre/écrase un enregistrement."""
        self._db[record_id] = bytes(payload)

    def fetch_all(self) -> dict[str, bytes]:
        """Instantané de tous les enregistrements."""
        return dict(self._db)

    def delete(self, record_id: str) -> None:
        """Supprime un enregistrement s'il existe."""
        self._db.pop(record_id, None)

    def write_lock(self) -> threading.RLock:
        """Verrou des écrivains."""
        return self._lock


class RedisChartStore:
    """Stockage de thèmes adossé à Redis (hash `natal:charts`, un champ par enregistrement)."""

    def __init__(
        self,
        url: str | None = None,
        client: redis.Redis | None = None,
        key: str = "natal:charts",
    ):
        """Crée un client Redis à partir de l'URL fournie (ou réutilise `client`)."""
        if client is None and not url:
            raise ValueError("RedisChartStore needs a url or a client")
        self.client = client if client is not None else redis.Redis.from_url(url)
        self.key = key
        self.lock_key = f"{key}:lock"
        self._log = structlog.get_logger(__name__).bind(component="redis_chart_store")

    def insert(self, record_id: str, payload: bytes) -> None:
        """Écrit le champ `record_id` du hash (HSET atomique)."""
        try:
            self.client.hset(self.key, record_id, payload)
        except redis.RedisError as err:
            raise PersistenceError(f"redis insert failed for {record_id}: {err}") from err

    def fetch_all(self) -> dict[str, bytes]:
        """Charge tout le hash (HGETALL)."""
        try:
            raw = self.client.hgetall(self.key)
        except redis.RedisError as err:
            raise PersistenceError(f"redis fetch failed: {err}") from err
        return {
            (k.decode("utf-8") if isinstance(k, bytes) else str(k)): v
            for k, v in raw.items()
        }

    def delete(self, record_id: str) -> None:
        """Supprime le champ `record_id` (HDEL)."""
        try:
            self.client.hdel(self.key, record_id)
        except redis.RedisError as err:
            raise PersistenceError(f"redis delete failed for {record_id}: {err}") from err

    @contextmanager
    def write_lock(self) -> Iterator[None]:
        """Verrou distribué Redis partagé par toutes les instances de l'application."""
        lock = self.client.lock(
            self.lock_key, timeout=LOCK_TIMEOUT_S, blocking_timeout=LOCK_BLOCKING_TIMEOUT_S
        )
        try:
            acquired = lock.acquire()
        except redis.RedisError as err:
            raise PersistenceError(f"redis lock failed: {err}") from err
        if not acquired:
            raise PersistenceError("chart cache lock not acquired in time")
        try:
            yield
        finally:
            try:
                lock.release()
            except redis.exceptions.LockError as err:
                # verrou expiré avant la fin de l'écriture
                self._log.warning("redis_lock_release_failed", error=str(err))
