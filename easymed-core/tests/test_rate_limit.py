"""
Tests for fixed window rate limiting.
"""

import pytest


class TestFixedWindowLimiter:
    """Tests for the store-backed fixed window limiter."""

    def test_allows_up_to_rate(self, store, clock):
        from easymed_core.rate_limit import FixedWindowLimiter

        limiter = FixedWindowLimiter(store, "test", rate=3, window=60, clock=clock)

        results = [limiter.consume("key") for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results[:3]] == [2, 1, 0]
        assert 0 < results[3].retry_after <= 60

    def test_window_resets_lazily(self, store, clock):
        """Should allow again once the window rolls over."""
        from easymed_core.rate_limit import FixedWindowLimiter

        limiter = FixedWindowLimiter(store, "test", rate=1, window=60, clock=clock)
        limiter.consume("key")
        assert not limiter.consume("key").allowed

        clock.advance(60)

        assert limiter.consume("key").allowed

    def test_scope_keys_are_independent(self, store, clock):
        from easymed_core.rate_limit import FixedWindowLimiter

        limiter = FixedWindowLimiter(store, "test", rate=1, window=60, clock=clock)

        assert limiter.consume("a").allowed
        assert limiter.consume("b").allowed
        assert not limiter.consume("a").allowed

    def test_peek_does_not_consume(self, store, clock):
        from easymed_core.rate_limit import FixedWindowLimiter

        limiter = FixedWindowLimiter(store, "test", rate=2, window=60, clock=clock)
        limiter.consume("key")

        assert limiter.peek("key").remaining == 1
        assert limiter.peek("key").remaining == 1
        assert limiter.consume("key").allowed

    def test_result_enum(self, store, clock):
        from easymed_core.rate_limit import FixedWindowLimiter, RateLimitResult

        limiter = FixedWindowLimiter(store, "test", rate=1, window=60, clock=clock)

        assert limiter.consume("key").result == RateLimitResult.ALLOWED
        assert limiter.consume("key").result == RateLimitResult.BLOCKED


class TestRateLimitPolicy:
    """Tests for the bundled request and verify limits."""

    def test_address_request_limit(self, store, clock):
        from easymed_core.errors import RateLimited
        from easymed_core.rate_limit import RateLimitPolicy

        policy = RateLimitPolicy(store, clock=clock)
        for _ in range(5):
            policy.check_address_request("10.0.0.1")

        with pytest.raises(RateLimited) as exc_info:
            policy.check_address_request("10.0.0.1")

        assert exc_info.value.retry_after > 0
        assert exc_info.value.http_status == 429

    def test_identifier_verify_limit(self, store, clock):
        from easymed_core.errors import RateLimited
        from easymed_core.rate_limit import RateLimitPolicy

        policy = RateLimitPolicy(store, clock=clock)
        for _ in range(10):
            policy.check_identifier_verify("+919876543210")

        with pytest.raises(RateLimited):
            policy.check_identifier_verify("+919876543210")

    def test_scopes_do_not_share_counters(self, store, clock):
        from easymed_core.config import RateLimitConfig
        from easymed_core.rate_limit import RateLimitPolicy, RateLimitScope

        policy = RateLimitPolicy(store, RateLimitConfig(identifier_sends=1), clock=clock)
        policy.check_identifier_send("+919876543210")

        assert policy.peek(RateLimitScope.IDENTIFIER_VERIFY, "+919876543210").remaining == 10
        assert policy.peek(RateLimitScope.IDENTIFIER_SEND, "+919876543210").remaining == 0
