"""Tests des stockages du cache de thèmes (mémoire, SQL, Redis)."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
import redis

from natal_backend.domain.chart_cache import ChartCache
from natal_backend.domain.errors import PersistenceError
from natal_backend.domain.mapper import map_chart
from natal_backend.domain.request_normalizer import normalize_request
from natal_backend.infra.providers.fake_deterministic import FakeDeterministicProvider
from natal_backend.infra.repo.db import get_engine
from natal_backend.infra.repo.sql_chart_store import SqlChartStore
from natal_backend.infra.repositories import InMemoryChartStore, RedisChartStore

MEMORY_URL = "sqlite+pysqlite:///:memory:"


@pytest.fixture(params=["memory", "sql"])
def any_store(request):
    if request.param == "memory":
        return InMemoryChartStore()
    return SqlChartStore(get_engine(MEMORY_URL), create_schema=True)


def test_insert_fetch_delete(any_store):
    any_store.insert("a", b"one")
    any_store.insert("b", b"two")
    assert any_store.fetch_all() == {"a": b"one", "b": b"two"}
    any_store.insert("a", b"uno")
    assert any_store.fetch_all()["a"] == b"uno"
    any_store.delete("a")
    any_store.delete("missing")
    assert any_store.fetch_all() == {"b": b"two"}


def test_write_lock_is_reentrant(any_store):
    with any_store.write_lock():
        with any_store.write_lock():
            any_store.insert("a", b"x")
    assert "a" in any_store.fetch_all()


def test_fetch_all_returns_snapshot():
    store = InMemoryChartStore()
    store.insert("a", b"x")
    snapshot = store.fetch_all()
    store.insert("b", b"y")
    assert set(snapshot) == {"a"}


def test_sql_store_behind_chart_cache(kyiv_birth, clock):
    store = SqlChartStore(get_engine(MEMORY_URL), create_schema=True)
    cache = ChartCache(store, clock=clock)
    raw = FakeDeterministicProvider().fetch_chart(normalize_request(kyiv_birth, "placidus"))
    chart = map_chart(raw, kyiv_birth, computed_at=clock())
    cache.save(chart)
    found = cache.find(kyiv_birth)
    assert found == chart


def test_sql_store_without_schema_raises_persistence_error():
    store = SqlChartStore(get_engine(MEMORY_URL))
    with pytest.raises(PersistenceError):
        store.fetch_all()
    with pytest.raises(PersistenceError):
        store.insert("a", b"x")


def test_redis_store_uses_hash_commands():
    client = Mock()
    client.hgetall.return_value = {b"rec-1": b"payload"}
    store = RedisChartStore(client=client, key="test:charts")
    store.insert("rec-1", b"payload")
    client.hset.assert_called_once_with("test:charts", "rec-1", b"payload")
    assert store.fetch_all() == {"rec-1": b"payload"}
    store.delete("rec-1")
    client.hdel.assert_called_once_with("test:charts", "rec-1")


def test_redis_store_needs_url_or_client():
    with pytest.raises(ValueError):
        RedisChartStore()


@pytest.mark.parametrize(
    ("method", "call"),
    [
        ("hset", lambda s: s.insert("a", b"x")),
        ("hgetall", lambda s: s.fetch_all()),
        ("hdel", lambda s: s.delete("a")),
    ],
)
def test_redis_errors_become_persistence_errors(method, call):
    client = Mock()
    getattr(client, method).side_effect = redis.ConnectionError("refused")
    store = RedisChartStore(client=client)
    with pytest.raises(PersistenceError):
        call(store)


def test_redis_write_lock_acquires_and_releases():
    client = Mock()
    lock = client.lock.return_value
    lock.acquire.return_value = True
    store = RedisChartStore(client=client, key="test:charts")
    with store.write_lock():
        pass
    client.lock.assert_called_once()
    assert client.lock.call_args[0][0] == "test:charts:lock"
    lock.release.assert_called_once()


def test_redis_write_lock_timeout():
    client = Mock()
    client.lock.return_value.acquire.return_value = False
    store = RedisChartStore(client=client)
    with pytest.raises(PersistenceError):
        with store.write_lock():
            pass


def test_redis_write_lock_expired_on_release_is_tolerated():
    client = Mock()
    lock = client.lock.return_value
    lock.acquire.return_value = True
    lock.release.side_effect = redis.exceptions.LockError("expired")
    store = RedisChartStore(client=client)
    with store.write_lock():
        pass
    lock.release.assert_called_once()
