from fastapi.testclient import TestClient

from capquote.main import app
from capquote.api.dependencies import get_quote_engine
from capquote.utils import redis_cache


class DummyRedis:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


def test_close_redis_client(monkeypatch):
    dummy = DummyRedis()
    monkeypatch.setattr(redis_cache, "_redis_client", dummy)
    redis_cache.close_redis_client()
    assert dummy.closed
    assert redis_cache._redis_client is None


def test_startup_warms_tables_and_shutdown_closes_client(monkeypatch, engine):
    dummy = DummyRedis()
    monkeypatch.setattr(redis_cache, "_redis_client", dummy)
    monkeypatch.setattr("capquote.main.get_quote_engine", lambda: engine)

    with TestClient(app):
        assert engine.repository.catalog is not None

    assert dummy.closed
    assert redis_cache._redis_client is None
