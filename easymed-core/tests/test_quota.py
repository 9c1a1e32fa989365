"""
Tests for delivery quota tracking.
"""

import pytest

from easymed_core.config import QuotaConfig

IDENTIFIER = "+919876543210"


def make_monitor(store, clock, **overrides):
    from easymed_core.quota import QuotaMonitor

    return QuotaMonitor(store, QuotaConfig(**overrides), clock=clock)


class TestCheckAndReserve:
    """Tests for all-or-nothing reservations."""

    def test_reserves_every_counter(self, store, clock):
        monitor = make_monitor(store, clock)

        decision = monitor.check_and_reserve(IDENTIFIER)

        assert decision.allowed
        usage = monitor.usage(IDENTIFIER)["usage"]
        assert [usage[p]["used"] for p in ("hour", "day", "month")] == [1, 1, 1]
        assert monitor.statistics()["usage"]["day"]["used"] == 1

    def test_identifier_daily_limit(self, store, clock):
        """Should deny the second send once the daily budget of one is spent."""
        from easymed_core.quota import QuotaPeriod, QuotaScope

        monitor = make_monitor(store, clock, identifier_daily=1)

        assert monitor.check_and_reserve(IDENTIFIER).allowed
        decision = monitor.check_and_reserve(IDENTIFIER)

        assert not decision.allowed
        assert decision.identifier_exhausted
        assert decision.scope == QuotaScope.IDENTIFIER
        assert decision.period == QuotaPeriod.DAY
        assert decision.limit == 1
        assert decision.used == 1

    def test_identifier_denial_consumes_nothing(self, store, clock):
        monitor = make_monitor(store, clock, identifier_hourly=1)

        assert monitor.check_and_reserve(IDENTIFIER).allowed
        assert monitor.check_and_reserve(IDENTIFIER).identifier_exhausted

        assert monitor.usage(IDENTIFIER)["usage"]["day"]["used"] == 1
        assert monitor.statistics()["usage"]["day"]["used"] == 1

    def test_global_exhaustion_still_counts_identifier(self, store, clock):
        """Should keep charging the identifier budget while global is spent."""
        monitor = make_monitor(store, clock, global_hourly=1)

        assert monitor.check_and_reserve(IDENTIFIER).allowed
        decision = monitor.check_and_reserve("+919876543211")

        assert decision.global_exhausted
        other = monitor.usage("+919876543211")["usage"]
        assert all(other[p]["used"] == 1 for p in ("hour", "day", "month"))
        assert monitor.statistics()["usage"]["day"]["used"] == 1

    def test_identifier_limit_enforced_while_global_spent(self, store, clock):
        monitor = make_monitor(store, clock, identifier_daily=1, global_hourly=0)

        assert monitor.check_and_reserve(IDENTIFIER).global_exhausted
        decision = monitor.check_and_reserve(IDENTIFIER)

        assert decision.identifier_exhausted
        assert decision.period.value == "day"

    def test_identifier_scope_checked_first(self, store, clock):
        monitor = make_monitor(store, clock, identifier_hourly=1, global_hourly=1)
        monitor.check_and_reserve(IDENTIFIER)

        assert monitor.check_and_reserve(IDENTIFIER).identifier_exhausted

    def test_hourly_counter_resets_on_the_hour(self, store, clock):
        monitor = make_monitor(store, clock, identifier_hourly=1)
        monitor.check_and_reserve(IDENTIFIER)
        assert not monitor.check_and_reserve(IDENTIFIER).allowed

        clock.advance(3200)

        assert monitor.check_and_reserve(IDENTIFIER).allowed
        assert monitor.usage(IDENTIFIER)["usage"]["day"]["used"] == 2

    def test_zero_limit_always_exhausted(self, store, clock):
        monitor = make_monitor(store, clock, global_hourly=0)

        assert monitor.check_and_reserve(IDENTIFIER).global_exhausted
        assert monitor.global_exhausted()


class TestQuotaReporting:
    """Tests for usage reports."""

    def test_at_risk_is_advisory(self, store, clock):
        monitor = make_monitor(store, clock, global_daily=10, identifier_hourly=100,
                               identifier_daily=100)
        for i in range(9):
            assert monitor.check_and_reserve(f"+91987654320{i}").allowed

        stats = monitor.statistics()

        assert stats["at_risk"] is True
        assert stats["unique_identifiers"] == 9
        assert monitor.check_and_reserve(IDENTIFIER).allowed

    def test_usage_status(self, store, clock):
        monitor = make_monitor(store, clock, identifier_hourly=1)
        assert monitor.usage(IDENTIFIER)["status"] == "OK"

        monitor.check_and_reserve(IDENTIFIER)
        report = monitor.usage(IDENTIFIER)

        assert report["status"] == "LIMIT_EXCEEDED"
        assert report["usage"]["hour"]["percentage"] == 100
        assert IDENTIFIER not in str(report)

    def test_outcome_tallies(self, store, clock):
        monitor = make_monitor(store, clock)

        monitor.record_outcome(IDENTIFIER, success=True)
        tally = monitor.record_outcome(IDENTIFIER, success=False)

        assert (tally.succeeded, tally.failed) == (1, 1)
        assert monitor.statistics()["outcomes"] == {"succeeded": 1, "failed": 1}
        assert monitor.usage(IDENTIFIER)["outcomes"] == {"succeeded": 1, "failed": 1}

    def test_seconds_until_reset(self, store, clock):
        from easymed_core.quota import QuotaPeriod

        monitor = make_monitor(store, clock)

        assert monitor.seconds_until_reset(QuotaPeriod.HOUR) == 3200
        assert monitor.seconds_until_reset(QuotaPeriod.DAY) == 8 * 3600 + 3200

    def test_period_start_boundaries(self):
        from datetime import datetime, timezone
        from easymed_core.quota import QuotaPeriod, period_start

        now = datetime(2025, 6, 15, 15, 6, 40, tzinfo=timezone.utc)

        assert period_start(QuotaPeriod.HOUR, now) == datetime(2025, 6, 15, 15, tzinfo=timezone.utc)
        assert period_start(QuotaPeriod.DAY, now) == datetime(2025, 6, 15, tzinfo=timezone.utc)
        assert period_start(QuotaPeriod.MONTH, now) == datetime(2025, 6, 1, tzinfo=timezone.utc)
