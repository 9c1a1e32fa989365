"""
Quota Monitor
=============
Hourly, daily and monthly delivery budgets per identifier and globally.

Periods start at UTC boundaries (top of hour, midnight, first of month) and
roll lazily when a counter is next read. Counters are never decremented;
a reservation is consumption.
"""

import math
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import structlog

from ..config import QuotaConfig
from ..identity import mask_identifier
from ..metrics import record_quota_usage
from ..storage import KeyValueStore
from .models import OutcomeTally, QuotaCounter, QuotaDecision, QuotaPeriod, QuotaScope

logger = structlog.get_logger(__name__)

GLOBAL_SCOPE_KEY = "global"

_PERIOD_SECONDS = {
    QuotaPeriod.HOUR: 3600,
    QuotaPeriod.DAY: 24 * 3600,
    QuotaPeriod.MONTH: 31 * 24 * 3600,
}


def period_start(period: QuotaPeriod, now: datetime) -> datetime:
    """UTC start of the period containing ``now``."""
    now = now.astimezone(timezone.utc)
    if period == QuotaPeriod.HOUR:
        return now.replace(minute=0, second=0, microsecond=0)
    if period == QuotaPeriod.DAY:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class QuotaMonitor:
    """
    Tracks delivery budgets and reserves them atomically.

    ``check_and_reserve`` is all-or-nothing within each scope. The monitor
    is the only writer of quota keys, so a monitor-level lock makes the
    cross-key reservation atomic.
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: Optional[QuotaConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.config = config or QuotaConfig()
        self._clock = clock
        self._lock = threading.Lock()

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def _limits(self, scope: QuotaScope) -> Dict[QuotaPeriod, int]:
        c = self.config
        if scope == QuotaScope.IDENTIFIER:
            return {
                QuotaPeriod.HOUR: c.identifier_hourly,
                QuotaPeriod.DAY: c.identifier_daily,
                QuotaPeriod.MONTH: c.identifier_monthly,
            }
        return {
            QuotaPeriod.HOUR: c.global_hourly,
            QuotaPeriod.DAY: c.global_daily,
            QuotaPeriod.MONTH: c.global_monthly,
        }

    @staticmethod
    def _key(scope_key: str, period: QuotaPeriod) -> str:
        return f"quota:{scope_key}:{period.value}"

    def _counter(self, scope_key: str, period: QuotaPeriod, now: datetime) -> QuotaCounter:
        start = period_start(period, now)
        counter = self.store.get(self._key(scope_key, period))
        if counter is None or counter.period_start < start:
            return QuotaCounter(period=period, period_start=start, count=0)
        return counter

    def _reserve_scope(
        self,
        scope: QuotaScope,
        scope_key: str,
        identifier: str,
        now: datetime,
    ) -> Optional[QuotaDecision]:
        """Reserve every period of one scope, or none. Returns the denial, if any."""
        reserved: List[QuotaCounter] = []
        for period, limit in self._limits(scope).items():
            counter = self._counter(scope_key, period, now)
            if counter.count >= limit:
                logger.warning(
                    "Quota exhausted",
                    scope=scope.value,
                    period=period.value,
                    identifier=mask_identifier(identifier),
                    limit=limit,
                    used=counter.count,
                )
                return QuotaDecision(
                    allowed=False,
                    scope=scope,
                    period=period,
                    limit=limit,
                    used=counter.count,
                )
            reserved.append(QuotaCounter(period=period, period_start=counter.period_start, count=counter.count + 1))

        for counter in reserved:
            self.store.set(self._key(scope_key, counter.period), counter, ttl=_PERIOD_SECONDS[counter.period])
        return None

    def check_and_reserve(self, identifier: str) -> QuotaDecision:
        """
        Reserve one delivery against the identifier budget, then the global one.

        Each scope is all-or-nothing. A spent identifier budget reserves
        nothing. A spent global budget still reserves the identifier
        counters, since the delivery proceeds without the primary provider.

        Returns:
            QuotaDecision naming the first exhausted counter when denied
        """
        now = self._now()
        with self._lock:
            denied = self._reserve_scope(QuotaScope.IDENTIFIER, identifier, identifier, now)
            if denied is None:
                denied = self._reserve_scope(QuotaScope.GLOBAL, GLOBAL_SCOPE_KEY, identifier, now)

        self._publish_usage()
        return denied if denied is not None else QuotaDecision.within_limits()

    def record_outcome(self, identifier: str, success: bool) -> OutcomeTally:
        """Record a delivery success or failure for reporting."""

        def _apply(tally: Optional[OutcomeTally]):
            tally = tally or OutcomeTally()
            if success:
                updated = OutcomeTally(succeeded=tally.succeeded + 1, failed=tally.failed)
            else:
                updated = OutcomeTally(succeeded=tally.succeeded, failed=tally.failed + 1)
            return updated, updated

        self.store.update(f"quota:tally:{GLOBAL_SCOPE_KEY}", _apply)
        return self.store.update(f"quota:tally:{identifier}", _apply)

    def _period_usage(self, scope: QuotaScope, scope_key: str, now: datetime) -> Dict[str, Any]:
        report: Dict[str, Any] = {}
        for period, limit in self._limits(scope).items():
            used = self._counter(scope_key, period, now).count
            report[period.value] = {
                "used": used,
                "limit": limit,
                "percentage": round(used / limit * 100) if limit else 100,
                "remaining": max(0, limit - used),
            }
        return report

    def _at_risk(self, usage: Dict[str, Any]) -> bool:
        threshold = self.config.alert_threshold
        return any(
            entry["limit"] and entry["used"] > entry["limit"] * threshold
            for entry in usage.values()
        )

    def usage(self, identifier: str) -> Dict[str, Any]:
        """Budget usage for one identifier."""
        now = self._now()
        usage = self._period_usage(QuotaScope.IDENTIFIER, identifier, now)
        tally = self.store.get(f"quota:tally:{identifier}") or OutcomeTally()
        exceeded = any(entry["remaining"] == 0 for entry in usage.values())
        return {
            "identifier": mask_identifier(identifier),
            "usage": usage,
            "status": "LIMIT_EXCEEDED" if exceeded else "OK",
            "at_risk": self._at_risk(usage),
            "outcomes": {"succeeded": tally.succeeded, "failed": tally.failed},
        }

    def global_exhausted(self) -> bool:
        now = self._now()
        return any(
            entry["remaining"] == 0
            for entry in self._period_usage(QuotaScope.GLOBAL, GLOBAL_SCOPE_KEY, now).values()
        )

    def statistics(self) -> Dict[str, Any]:
        """Global usage report. ``at_risk`` is advisory and never blocks."""
        now = self._now()
        usage = self._period_usage(QuotaScope.GLOBAL, GLOBAL_SCOPE_KEY, now)
        tally = self.store.get(f"quota:tally:{GLOBAL_SCOPE_KEY}") or OutcomeTally()
        tracked = {
            key.split(":")[1]
            for key in self.store.keys("quota:")
            if not key.startswith("quota:tally:") and not key.startswith(f"quota:{GLOBAL_SCOPE_KEY}:")
        }
        return {
            "timestamp": now.isoformat(),
            "usage": usage,
            "at_risk": self._at_risk(usage),
            "alert_threshold": self.config.alert_threshold,
            "unique_identifiers": len(tracked),
            "outcomes": {"succeeded": tally.succeeded, "failed": tally.failed},
        }

    def _publish_usage(self) -> None:
        now = self._now()
        for period, entry in self._period_usage(QuotaScope.GLOBAL, GLOBAL_SCOPE_KEY, now).items():
            ratio = entry["used"] / entry["limit"] if entry["limit"] else 1.0
            record_quota_usage(period, ratio)
            if entry["limit"] and entry["used"] > entry["limit"] * self.config.alert_threshold:
                logger.warning(
                    "Quota at risk",
                    period=period,
                    used=entry["used"],
                    limit=entry["limit"],
                )

    def seconds_until_reset(self, period: QuotaPeriod) -> int:
        """Seconds until the current ``period`` rolls over."""
        now = self._now()
        start = period_start(period, now)
        if period == QuotaPeriod.HOUR:
            next_start = start + timedelta(hours=1)
        elif period == QuotaPeriod.DAY:
            next_start = start + timedelta(days=1)
        elif start.month == 12:
            next_start = start.replace(year=start.year + 1, month=1)
        else:
            next_start = start.replace(month=start.month + 1)
        return max(1, int(math.ceil((next_start - now).total_seconds())))
