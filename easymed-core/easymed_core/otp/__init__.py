"""
OTP Challenges
==============
Challenge creation and verification with brute-force protection.
"""

from .models import (
    ChallengePurpose,
    VerificationStatus,
    Challenge,
    ChallengeSlot,
    VerificationResult,
)
from .codes import new_code, new_salt, code_digest, code_matches
from .engine import VerificationEngine

__all__ = [
    # Models
    "ChallengePurpose",
    "VerificationStatus",
    "Challenge",
    "ChallengeSlot",
    "VerificationResult",
    # Codes
    "new_code",
    "new_salt",
    "code_digest",
    "code_matches",
    # Engine
    "VerificationEngine",
]
