"""
Rate Limit Models
=================
Data models for rate limiting results.
"""

from typing import Optional
from dataclasses import dataclass
from enum import Enum


class RateLimitResult(str, Enum):
    """Rate limit decision result."""
    ALLOWED = "allowed"
    BLOCKED = "blocked"


class RateLimitScope(str, Enum):
    """What a limiter counts against."""
    ADDRESS_REQUEST = "address_request"
    ADDRESS_VERIFY = "address_verify"
    IDENTIFIER_SEND = "identifier_send"
    IDENTIFIER_VERIFY = "identifier_verify"


@dataclass(frozen=True)
class RateWindow:
    """Counter for one fixed window of one scope key."""
    window_start: int
    count: int


@dataclass
class RateLimitInfo:
    """Rate limit check result with quota information."""
    allowed: bool
    remaining: int
    limit: int
    reset_at: int  # Unix timestamp
    retry_after: Optional[int] = None  # Seconds until retry allowed

    @property
    def result(self) -> RateLimitResult:
        return RateLimitResult.ALLOWED if self.allowed else RateLimitResult.BLOCKED
