"""Tests for QuoteCache."""

from fakes import make_quote

from app.quotes.cache import QuoteCache


class TestQuoteCache:
    """Unit tests for the QuoteCache."""

    def test_put_and_get(self, clock):
        cache = QuoteCache(ttl=60, clock=clock)
        stored = cache.put("AAPL", make_quote("AAPL", 190.5))
        assert stored.cached_at == clock.now
        assert cache.get("AAPL") == stored

    def test_put_clears_stale_flag(self, clock):
        cache = QuoteCache(ttl=60, clock=clock)
        stored = cache.put("AAPL", make_quote("AAPL", stale=True))
        assert stored.stale is False

    def test_expired_entry_is_a_miss(self, clock):
        cache = QuoteCache(ttl=60, clock=clock)
        cache.put("AAPL", make_quote("AAPL"))
        clock.advance(60)
        assert cache.get("AAPL") is None

    def test_peek_ignores_ttl(self, clock):
        cache = QuoteCache(ttl=60, clock=clock)
        stored = cache.put("AAPL", make_quote("AAPL"))
        clock.advance(3600)
        assert cache.peek("AAPL") == stored
        assert cache.is_fresh(stored) is False

    def test_missing_symbol(self):
        cache = QuoteCache()
        assert cache.get("NOPE") is None
        assert cache.peek("NOPE") is None

    def test_remove(self, clock):
        cache = QuoteCache(clock=clock)
        cache.put("AAPL", make_quote("AAPL"))
        cache.remove("AAPL")
        cache.remove("AAPL")  # Should not raise
        assert "AAPL" not in cache

    def test_clear(self, clock):
        cache = QuoteCache(clock=clock)
        cache.put("AAPL", make_quote("AAPL"))
        cache.put("MSFT", make_quote("MSFT"))
        cache.clear()
        assert len(cache) == 0

    def test_stats(self, clock):
        cache = QuoteCache(ttl=30, clock=clock)
        cache.put("AAPL", make_quote("AAPL"))
        cache.get("AAPL")
        cache.get("AAPL")
        cache.get("MSFT")
        stats = cache.stats()
        assert stats == {"size": 1, "ttl": 30, "hits": 2, "misses": 1, "hit_rate": 0.6667}

    def test_unstamped_quote_is_never_fresh(self):
        assert QuoteCache().is_fresh(make_quote("AAPL")) is False
