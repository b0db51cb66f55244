"""
Tests for the fetch governor.

Tests cover:
- Cache hits skip the network and the quota
- Stale entries are refreshed, and served when refresh fails
- Rate-limit rejection with and without fallback
- Error propagation
- Single-flight de-duplication of concurrent misses
- Cache key building
"""

import threading
import time
from unittest.mock import MagicMock

import pytest
import requests

from data.cache import CacheStore
from data.errors import RateLimited, TransportError, UpstreamError
from data.governor import FetchGovernor, build_cache_key, normalize_params
from data.rate_limiter import RateLimiter


@pytest.fixture
def cache(clock):
    return CacheStore(clock=clock)


@pytest.fixture
def limiter(clock):
    return RateLimiter(max_requests=25, window_size=60.0, clock=clock)


@pytest.fixture
def governor(cache, limiter, transport):
    return FetchGovernor(cache, limiter, transport=transport)


class TestBuildCacheKey:
    """Tests for cache key construction."""

    def test_no_params(self):
        assert build_cache_key("coingecko:/ping") == "coingecko:/ping"

    def test_params_sorted(self):
        """Test that parameter order does not change the key."""
        a = build_cache_key("ep", {"b": 2, "a": 1})
        b = build_cache_key("ep", {"a": 1, "b": 2})

        assert a == b == "ep?a=1&b=2"

    def test_none_dropped_and_lists_joined(self):
        key = build_cache_key("ep", {"ids": ["bitcoin", "ethereum"], "page": None})

        assert key == "ep?ids=bitcoin,ethereum"

    def test_booleans_lowercased(self):
        assert build_cache_key("ep", {"sparkline": False}) == "ep?sparkline=false"

    def test_all_none_params(self):
        assert build_cache_key("ep", {"page": None}) == "ep"

    def test_normalize_params(self):
        assert normalize_params({"days": 30, "flag": True, "ids": ("a", "b")}) == {
            "days": "30",
            "flag": "true",
            "ids": "a,b",
        }


class TestGovernorCaching:
    """Tests for fresh hits and stale refreshes."""

    def test_miss_fetches_and_caches(self, governor, cache):
        fetcher = MagicMock(return_value={"usd": 64000})

        result = governor.resolve("btc-price", 60, fetcher)

        assert result == {"usd": 64000}
        fetcher.assert_called_once()
        assert cache.get("btc-price").value == {"usd": 64000}

    def test_fresh_hit_skips_network_and_quota(self, governor, limiter, clock):
        """Test that a second call within the TTL issues no network call."""
        fetcher = MagicMock(return_value={"usd": 64000})

        first = governor.resolve("btc-price", 60, fetcher)
        clock.advance(59)
        second = governor.resolve("btc-price", 60, fetcher)

        assert second is first
        assert fetcher.call_count == 1
        assert limiter.request_count == 1

    def test_stale_entry_is_refreshed(self, governor, clock):
        fetcher = MagicMock(side_effect=[{"usd": 1}, {"usd": 2}])

        governor.resolve("btc-price", 60, fetcher)
        clock.advance(61)
        result = governor.resolve("btc-price", 60, fetcher)

        assert result == {"usd": 2}
        assert fetcher.call_count == 2

    def test_distinct_keys_fetched_separately(self, governor):
        fetcher = MagicMock(side_effect=["a", "b"])

        assert governor.resolve("key-a", 60, fetcher) == "a"
        assert governor.resolve("key-b", 60, fetcher) == "b"


class TestGovernorFailures:
    """Tests for failure handling and stale fallback."""

    def test_failure_with_stale_entry_returns_stale(self, governor, cache, clock):
        """Test that a failed refresh serves the previous value unchanged."""
        governor.resolve("btc-price", 60, lambda: {"usd": 64000})
        fetched_at = cache.get("btc-price").fetched_at
        clock.advance(61)

        failing = MagicMock(side_effect=TransportError("timeout", timed_out=True))
        result = governor.resolve("btc-price", 60, failing)

        assert result == {"usd": 64000}
        failing.assert_called_once()
        # Entry left untouched
        assert cache.get("btc-price").fetched_at == fetched_at

    def test_failure_without_entry_propagates(self, governor, cache):
        error = UpstreamError("API error 500", status_code=500)

        with pytest.raises(UpstreamError) as exc_info:
            governor.resolve("btc-price", 60, MagicMock(side_effect=error))

        assert exc_info.value.status_code == 500
        assert exc_info.value.rate_limited is False
        assert cache.get("btc-price") is None

    def test_upstream_429_is_flagged(self, governor):
        error = UpstreamError("Upstream rate limit exceeded", status_code=429)

        with pytest.raises(UpstreamError) as exc_info:
            governor.resolve("btc-price", 60, MagicMock(side_effect=error))

        assert exc_info.value.rate_limited is True

    @pytest.mark.parametrize(
        "raised,expected,timed_out",
        [
            (requests.ConnectionError("refused"), TransportError, False),
            (requests.Timeout("slow"), TransportError, True),
            (TimeoutError("slow"), TransportError, True),
            (ConnectionResetError("reset"), TransportError, False),
            (ValueError("Expecting value"), UpstreamError, None),
            (KeyError("data"), UpstreamError, None),
        ],
    )
    def test_untyped_errors_are_wrapped(self, governor, cache, raised, expected, timed_out):
        with pytest.raises(expected) as exc_info:
            governor.resolve("key", 60, MagicMock(side_effect=raised))

        assert exc_info.value.__cause__ is raised
        if timed_out is not None:
            assert exc_info.value.timed_out is timed_out
        assert cache.get("key") is None
        assert governor._in_flight == {}

    def test_untyped_error_falls_back_to_stale(self, governor, clock):
        hook = MagicMock()
        governor.on_fallback = hook
        governor.resolve("key", 60, lambda: "old")
        clock.advance(61)

        result = governor.resolve("key", 60, MagicMock(side_effect=requests.ConnectionError()))

        assert result == "old"
        assert isinstance(hook.call_args[0][1], TransportError)

    def test_keyboard_interrupt_propagates(self, governor, clock):
        governor.resolve("key", 60, lambda: "old")
        clock.advance(61)

        with pytest.raises(KeyboardInterrupt):
            governor.resolve("key", 60, MagicMock(side_effect=KeyboardInterrupt))

        # The in-flight slot was released
        assert governor.resolve("key", 60, lambda: "new") == "new"

    def test_on_fallback_hook(self, cache, limiter, clock):
        hook = MagicMock()
        governor = FetchGovernor(cache, limiter, on_fallback=hook)
        governor.resolve("key", 60, lambda: "old")
        clock.advance(61)
        error = TransportError("connection refused")

        governor.resolve("key", 60, MagicMock(side_effect=error))

        hook.assert_called_once()
        key, passed_error, entry = hook.call_args[0]
        assert key == "key"
        assert passed_error is error
        assert entry.value == "old"

    def test_client_usable_after_error(self, governor):
        with pytest.raises(TransportError):
            governor.resolve("key", 60, MagicMock(side_effect=TransportError("down")))

        assert governor.resolve("key", 60, lambda: "ok") == "ok"


class TestGovernorRateLimiting:
    """Tests for interaction with the rate limiter."""

    def test_26th_distinct_key_is_rejected(self, governor):
        """Test that 25 uncached keys pass and the 26th raises RateLimited."""
        for i in range(25):
            assert governor.resolve(f"key-{i}", 60, lambda i=i: i) == i

        fetcher = MagicMock()
        with pytest.raises(RateLimited) as exc_info:
            governor.resolve("key-25", 60, fetcher)

        fetcher.assert_not_called()
        assert exc_info.value.status.remaining == 0
        assert exc_info.value.status.is_blocked is True
        assert exc_info.value.key == "key-25"

    def test_rejection_with_stale_entry_returns_stale(self, governor, limiter, clock):
        governor.resolve("btc-price", 60, lambda: "old")
        clock.advance(61)
        for _ in range(25):
            limiter.try_acquire()

        fetcher = MagicMock()
        result = governor.resolve("btc-price", 60, fetcher)

        assert result == "old"
        fetcher.assert_not_called()

    def test_rejected_key_succeeds_after_window_reset(self, governor, clock):
        for i in range(25):
            governor.resolve(f"key-{i}", 60, lambda: i)
        with pytest.raises(RateLimited):
            governor.resolve("late", 60, lambda: "late")

        clock.advance(60)

        assert governor.get_rate_limit_status().remaining == 25
        assert governor.resolve("late", 60, lambda: "late") == "late"

    def test_cache_hits_do_not_consume_quota(self, governor, limiter):
        governor.resolve("key", 60, lambda: 1)
        for _ in range(100):
            governor.resolve("key", 60, lambda: 2)

        assert limiter.request_count == 1

    def test_failed_fetch_still_consumes_quota(self, governor, limiter):
        with pytest.raises(TransportError):
            governor.resolve("key", 60, MagicMock(side_effect=TransportError("down")))

        assert limiter.request_count == 1


class TestGovernorSingleFlight:
    """Tests for de-duplication of concurrent misses."""

    def test_concurrent_callers_share_one_call(self, governor, limiter):
        started = threading.Event()
        release = threading.Event()
        calls = []

        def slow_fetcher():
            calls.append(1)
            started.set()
            release.wait(timeout=5)
            return "value"

        results = []

        def caller():
            results.append(governor.resolve("key", 60, slow_fetcher))

        first = threading.Thread(target=caller)
        first.start()
        assert started.wait(timeout=5)

        others = [threading.Thread(target=caller) for _ in range(4)]
        for t in others:
            t.start()
        # Give followers time to attach to the in-flight call
        time.sleep(0.1)
        assert "key" in governor._in_flight
        release.set()

        for t in [first, *others]:
            t.join(timeout=5)

        assert results == ["value"] * 5
        assert len(calls) == 1
        assert limiter.request_count == 1

    def test_followers_receive_owner_error(self, governor):
        started = threading.Event()
        release = threading.Event()

        def failing_fetcher():
            started.set()
            release.wait(timeout=5)
            raise UpstreamError("API error 503", status_code=503)

        errors = []

        def caller():
            try:
                governor.resolve("key", 60, failing_fetcher)
            except UpstreamError as e:
                errors.append(e)

        owner = threading.Thread(target=caller)
        owner.start()
        assert started.wait(timeout=5)
        follower = threading.Thread(target=caller)
        follower.start()
        release.set()
        owner.join(timeout=5)
        follower.join(timeout=5)

        assert len(errors) == 2
        assert all(e.status_code == 503 for e in errors)
        assert governor._in_flight == {}


class TestGovernorFetchJson:
    """Tests for the transport-backed fetch_json."""

    def test_fetch_json_uses_transport(self, governor, transport):
        transport.get_json.return_value = {"gecko_says": "hello"}

        result = governor.fetch_json(
            "coingecko:/ping", "https://api.example.com/ping", 30, params={"a": "1"}
        )

        assert result == {"gecko_says": "hello"}
        transport.get_json.assert_called_once_with(
            "https://api.example.com/ping", params={"a": "1"}, headers=None
        )

    def test_validation_failure_is_not_cached(self, governor, transport, cache):
        transport.get_json.return_value = {"unexpected": True}

        def validate(payload):
            raise UpstreamError("bad payload")

        with pytest.raises(UpstreamError):
            governor.fetch_json("key", "https://api.example.com", 30, validate=validate)

        assert cache.get("key") is None

    def test_validation_failure_falls_back(self, governor, transport, clock):
        transport.get_json.side_effect = [["good"], {"bad": True}]

        def validate(payload):
            if not isinstance(payload, list):
                raise UpstreamError("Expected a JSON array")

        governor.fetch_json("key", "https://api.example.com", 30, validate=validate)
        clock.advance(31)
        result = governor.fetch_json("key", "https://api.example.com", 30, validate=validate)

        assert result == ["good"]

    def test_parse_result_is_cached(self, governor, transport):
        transport.get_json.return_value = {"data": [{"v": "1"}, {"v": "2"}]}

        def parse(payload):
            return [int(record["v"]) for record in payload["data"]]

        first = governor.fetch_json("key", "https://api.example.com", 30, parse=parse)
        second = governor.fetch_json("key", "https://api.example.com", 30, parse=parse)

        assert first == second == [1, 2]
        transport.get_json.assert_called_once()

    def test_parse_failure_raises_upstream_error(self, governor, transport, cache):
        transport.get_json.return_value = {"data": [{"w": "1"}]}

        with pytest.raises(UpstreamError) as exc_info:
            governor.fetch_json(
                "key",
                "https://api.example.com",
                30,
                parse=lambda payload: [record["v"] for record in payload["data"]],
            )

        assert exc_info.value.url == "https://api.example.com"
        assert isinstance(exc_info.value.__cause__, KeyError)
        assert cache.get("key") is None

    def test_no_transport(self, cache, limiter):
        governor = FetchGovernor(cache, limiter)

        with pytest.raises(RuntimeError):
            governor.fetch_json("key", "https://api.example.com", 30)


class TestGovernorIntrospection:
    """Tests for clear and status passthroughs."""

    def test_clear_cache_forces_refetch(self, governor):
        fetcher = MagicMock(side_effect=["first", "second"])
        governor.resolve("key", 60, fetcher)

        assert governor.clear_cache() == 1
        assert governor.get_cache_stats().size == 0
        assert governor.resolve("key", 60, fetcher) == "second"
        assert fetcher.call_count == 2

    def test_status_reads_are_idempotent(self, governor, limiter):
        governor.resolve("key", 60, lambda: 1)

        for _ in range(10):
            governor.get_rate_limit_status()
            governor.get_cache_stats()

        assert limiter.request_count == 1
        assert governor.get_cache_stats().keys == ("key",)
        assert governor.get_rate_limit_status().remaining == 24

    def test_prune_cache(self, governor, clock):
        governor.resolve("key", 10, lambda: 1)
        clock.advance(100)

        assert governor.prune_cache(grace_factor=5) == 1
        assert governor.get_cache_stats().size == 0
