import re

from fakes import FakeClock
from tangen.storage import CacheStore, cache_key, sanitize_key, stable_hash


def test_cache_key_is_namespaced_and_bounded():
    key = cache_key("news@feed", "AAPL")
    assert re.fullmatch(r"cache_news_feed_\d+", key)
    long_key = cache_key("sentiment", "x" * 10_000)
    assert len(long_key) < 64


def test_cache_key_hashes_full_identifier():
    prefix = "a" * 200
    assert cache_key("sentiment", prefix + "one") != cache_key("sentiment", prefix + "two")


def test_stable_hash_is_deterministic():
    assert stable_hash("AAPL_short-term") == stable_hash("AAPL_short-term")
    assert sanitize_key("a-b.c") == "a_b_c"


def test_get_before_ttl_returns_stored_value_unchanged():
    clock = FakeClock(1_000)
    store = CacheStore(ttl_ms=300_000, clock=clock)
    value = {"recentGrowth": 1.5, "items": [1, 2, 3]}
    store.put("k", value)

    clock.now += 300_000
    assert store.get("k") == value
    assert store.get("k") == value


def test_get_after_ttl_evicts_entry():
    clock = FakeClock(0)
    store = CacheStore(ttl_ms=1_000, clock=clock)
    store.put("k", [1])

    clock.now = 1_001
    assert store.get("k") is None
    assert not store.contains("k")


def test_get_fails_open_on_corrupt_payload():
    store = CacheStore()
    with store._conn() as conn:
        conn.execute(
            "INSERT INTO cache_entries(key, payload, stored_at) VALUES(?, ?, ?)",
            ("bad", "{not json", 0),
        )
    assert store.get("bad") is None


def test_last_write_wins():
    store = CacheStore()
    store.put("k", "first")
    store.put("k", "second")
    assert store.get("k") == "second"


def test_purge_expired_and_clear():
    clock = FakeClock(0)
    store = CacheStore(ttl_ms=100, clock=clock)
    store.put("old", 1)
    clock.now = 500
    store.put("new", 2)

    assert store.purge_expired() == 1
    assert store.contains("new")
    assert store.clear() == 1


def test_entries_survive_reopen(tmp_path):
    path = tmp_path / "cache" / "tangen.db"
    first = CacheStore(path)
    first.put("k", {"a": 1})
    first.close()

    second = CacheStore(path)
    assert second.get("k") == {"a": 1}
    second.close()
