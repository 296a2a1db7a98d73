import fakeredis
import redis

from capquote.utils import redis_cache


def test_cache_quote_round_trip(monkeypatch):
    fake = fakeredis.FakeStrictRedis()
    monkeypatch.setattr(redis_cache, "get_redis_client", lambda: fake)

    data = {"estimate": {"subtotal": 1194.0}, "warnings": []}
    redis_cache.cache_quote("quote|v1|abc", data, expire=10)
    assert redis_cache.get_cached_quote("quote|v1|abc") == data
    assert redis_cache.get_cached_quote("quote|v1|other") is None
    assert 10 <= fake.ttl("quote:quote|v1|abc") <= 11


def test_invalidate_quote_cache(monkeypatch):
    fake = fakeredis.FakeStrictRedis()
    monkeypatch.setattr(redis_cache, "get_redis_client", lambda: fake)

    redis_cache.cache_quote("a", {"n": 1})
    redis_cache.cache_quote("b", {"n": 2})
    fake.set("unrelated", "keep")

    assert redis_cache.invalidate_quote_cache() == 2
    assert redis_cache.get_cached_quote("a") is None
    assert fake.get("unrelated") == b"keep"


def test_malformed_payload_is_a_miss(monkeypatch):
    fake = fakeredis.FakeStrictRedis()
    monkeypatch.setattr(redis_cache, "get_redis_client", lambda: fake)
    fake.set("quote:bad", "{not json")
    assert redis_cache.get_cached_quote("bad") is None


def test_fallback_when_redis_unavailable(monkeypatch, caplog):
    class DummyRedis:
        def get(self, key):
            raise redis.exceptions.ConnectionError()

        def setex(self, *args, **kwargs):
            raise redis.exceptions.ConnectionError()

        def scan_iter(self, pattern):
            raise redis.exceptions.ConnectionError()

    monkeypatch.setattr(redis_cache, "get_redis_client", lambda: DummyRedis())

    with caplog.at_level("WARNING"):
        assert redis_cache.get_cached_quote("k") is None
        redis_cache.cache_quote("k", {"n": 1})
        assert redis_cache.invalidate_quote_cache() == 0
    assert "Redis unavailable" in caplog.text


def test_disabled_redis_uses_null_client(monkeypatch):
    monkeypatch.setattr(redis_cache, "_redis_client", None)
    monkeypatch.setattr(redis_cache.settings, "REDIS_URL", "")
    client = redis_cache.get_redis_client()
    assert isinstance(client, redis_cache._NullRedis)
    redis_cache.cache_quote("k", {"n": 1})
    assert redis_cache.get_cached_quote("k") is None
