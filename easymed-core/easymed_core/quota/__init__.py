"""
Delivery Quota
==============
Budget tracking for outbound challenge deliveries.
"""

from .models import QuotaScope, QuotaPeriod, QuotaCounter, OutcomeTally, QuotaDecision
from .monitor import QuotaMonitor, period_start

__all__ = [
    "QuotaScope",
    "QuotaPeriod",
    "QuotaCounter",
    "OutcomeTally",
    "QuotaDecision",
    "QuotaMonitor",
    "period_start",
]
