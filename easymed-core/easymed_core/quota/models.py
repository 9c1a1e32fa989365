"""
Quota Models
============
Budget counters and reservation decisions.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class QuotaScope(str, Enum):
    IDENTIFIER = "identifier"
    GLOBAL = "global"


class QuotaPeriod(str, Enum):
    HOUR = "hour"
    DAY = "day"
    MONTH = "month"


@dataclass(frozen=True)
class QuotaCounter:
    """Count for one scope and period, reset at ``period_start`` boundaries."""
    period: QuotaPeriod
    period_start: datetime
    count: int


@dataclass(frozen=True)
class OutcomeTally:
    """Delivery success and failure counts for reporting."""
    succeeded: int = 0
    failed: int = 0


@dataclass(frozen=True)
class QuotaDecision:
    """
    Result of ``check_and_reserve``.

    ``allowed`` means every counter was reserved. Otherwise ``scope``,
    ``period``, ``limit`` and ``used`` name the first exhausted counter.
    An identifier denial reserved nothing; a global denial still reserved
    the identifier counters.
    """
    allowed: bool
    scope: Optional[QuotaScope] = None
    period: Optional[QuotaPeriod] = None
    limit: Optional[int] = None
    used: Optional[int] = None

    @classmethod
    def within_limits(cls) -> "QuotaDecision":
        return cls(allowed=True)

    @property
    def identifier_exhausted(self) -> bool:
        return not self.allowed and self.scope == QuotaScope.IDENTIFIER

    @property
    def global_exhausted(self) -> bool:
        return not self.allowed and self.scope == QuotaScope.GLOBAL
