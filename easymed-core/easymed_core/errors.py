"""
Error Taxonomy
==============
Closed set of error kinds surfaced by the verification engine.

Every outward error carries a kind plus an optional ``retry_after`` or
``remaining_attempts`` so clients can render an actionable message.
Provider identities and internal details never appear in ``to_dict()``.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Error kinds returned to callers."""
    INVALID_IDENTIFIER = "invalid_identifier"
    COOLDOWN_ACTIVE = "cooldown_active"
    RATE_LIMITED = "rate_limited"
    QUOTA_EXCEEDED = "quota_exceeded"
    DELIVERY_DEGRADED = "delivery_degraded"  # soft, reported as a flag
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ATTEMPTS_EXHAUSTED = "attempts_exhausted"
    INVALID_CODE = "invalid_code"
    TOKEN_INVALID = "token_invalid"
    TOKEN_REVOKED = "token_revoked"
    TOKEN_EXPIRED = "token_expired"


HTTP_STATUS: Dict[ErrorKind, int] = {
    ErrorKind.INVALID_IDENTIFIER: 400,
    ErrorKind.COOLDOWN_ACTIVE: 429,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.QUOTA_EXCEEDED: 429,
    ErrorKind.DELIVERY_DEGRADED: 200,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.EXPIRED: 410,
    ErrorKind.ATTEMPTS_EXHAUSTED: 429,
    ErrorKind.INVALID_CODE: 400,
    ErrorKind.TOKEN_INVALID: 401,
    ErrorKind.TOKEN_REVOKED: 401,
    ErrorKind.TOKEN_EXPIRED: 401,
}

USER_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.INVALID_IDENTIFIER: "Please enter a valid mobile number or email address.",
    ErrorKind.COOLDOWN_ACTIVE: "Please wait before requesting another code.",
    ErrorKind.RATE_LIMITED: "Too many requests. Please try again later.",
    ErrorKind.QUOTA_EXCEEDED: "Verification limit reached. Please try again later.",
    ErrorKind.DELIVERY_DEGRADED: "Your code may take longer than usual to arrive.",
    ErrorKind.NOT_FOUND: "No active verification code. Please request a new one.",
    ErrorKind.EXPIRED: "Your code has expired. Please request a new one.",
    ErrorKind.ATTEMPTS_EXHAUSTED: "Too many attempts. Please request a new code.",
    ErrorKind.INVALID_CODE: "Incorrect code.",
    ErrorKind.TOKEN_INVALID: "Your session is invalid. Please sign in again.",
    ErrorKind.TOKEN_REVOKED: "Your session has ended. Please sign in again.",
    ErrorKind.TOKEN_EXPIRED: "Your session has expired. Please sign in again.",
}


class EasyMedAuthError(Exception):
    """Base exception for all verification and token errors."""

    kind: ErrorKind = ErrorKind.INVALID_IDENTIFIER

    def __init__(
        self,
        message: Optional[str] = None,
        retry_after: Optional[int] = None,
        remaining_attempts: Optional[int] = None,
    ):
        self.message = message or USER_MESSAGES[self.kind]
        self.retry_after = retry_after
        self.remaining_attempts = remaining_attempts
        super().__init__(f"[{self.kind.value}] {self.message}")

    @property
    def http_status(self) -> int:
        return HTTP_STATUS[self.kind]

    def to_dict(self) -> Dict[str, Any]:
        """User-safe representation for API responses."""
        body: Dict[str, Any] = {
            "error": self.kind.value,
            "message": USER_MESSAGES[self.kind],
        }
        if self.retry_after is not None:
            body["retry_after"] = self.retry_after
        if self.remaining_attempts is not None:
            body["remaining_attempts"] = self.remaining_attempts
        return body


class InvalidIdentifier(EasyMedAuthError):
    """Raised when a phone number or email cannot be normalized."""
    kind = ErrorKind.INVALID_IDENTIFIER


class CooldownActive(EasyMedAuthError):
    """Raised when a challenge is requested inside the resend interval."""
    kind = ErrorKind.COOLDOWN_ACTIVE


class RateLimited(EasyMedAuthError):
    """Raised when a rate window is exhausted."""
    kind = ErrorKind.RATE_LIMITED


class QuotaExceeded(EasyMedAuthError):
    """Raised when the delivery budget for an identifier is spent."""
    kind = ErrorKind.QUOTA_EXCEEDED


class ChallengeNotFound(EasyMedAuthError):
    kind = ErrorKind.NOT_FOUND


class ChallengeExpired(EasyMedAuthError):
    kind = ErrorKind.EXPIRED


class AttemptsExhausted(EasyMedAuthError):
    kind = ErrorKind.ATTEMPTS_EXHAUSTED


class InvalidCode(EasyMedAuthError):
    kind = ErrorKind.INVALID_CODE


class TokenInvalid(EasyMedAuthError):
    kind = ErrorKind.TOKEN_INVALID


class TokenRevoked(EasyMedAuthError):
    kind = ErrorKind.TOKEN_REVOKED


class TokenExpired(EasyMedAuthError):
    kind = ErrorKind.TOKEN_EXPIRED


class ProviderNotConfigured(RuntimeError):
    """Raised when a delivery adapter is used before initialization."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Provider '{provider}' is not initialized")
