"""
Rate Limiting
=============
Fixed window rate limiters for challenge requests and verifications.
"""

from .models import RateLimitResult, RateLimitScope, RateWindow, RateLimitInfo
from .in_memory import FixedWindowLimiter
from .policy import RateLimitPolicy

__all__ = [
    # Models
    "RateLimitResult",
    "RateLimitScope",
    "RateWindow",
    "RateLimitInfo",
    # Limiters
    "FixedWindowLimiter",
    "RateLimitPolicy",
]
