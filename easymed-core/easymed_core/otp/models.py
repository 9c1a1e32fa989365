"""
OTP Models
==========
Data models and enums for challenge creation and verification.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class ChallengePurpose(str, Enum):
    """Why a challenge was requested."""
    LOGIN = "login"
    REGISTRATION = "registration"


class VerificationStatus(str, Enum):
    """Closed set of verification outcomes."""
    VERIFIED = "verified"
    INVALID = "invalid"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"


@dataclass(frozen=True)
class Challenge:
    """A pending OTP challenge. Only a salted, identifier-bound digest of the code is kept."""
    identifier: str
    secret_hash: str
    salt: str
    purpose: ChallengePurpose
    created_at: datetime
    expires_at: datetime
    attempt_count: int
    max_attempts: int
    channel: str

    @property
    def remaining_attempts(self) -> int:
        return max(0, self.max_attempts - self.attempt_count)

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class ChallengeSlot:
    """
    Per-identifier storage record.

    The cooldown marker sits beside the challenge so cooldown check and
    insert happen in one atomic store update.
    """
    challenge: Optional[Challenge]
    last_created_at: datetime


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a verification attempt."""
    status: VerificationStatus
    remaining_attempts: int = 0
    challenge: Optional[Challenge] = None

    @property
    def verified(self) -> bool:
        return self.status == VerificationStatus.VERIFIED
