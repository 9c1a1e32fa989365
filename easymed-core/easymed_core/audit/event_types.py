"""
Audit Event Kinds
=================
Challenge, bypass and token lifecycle events.
"""

from enum import Enum


class AuditEventKind(str, Enum):
    """Kinds of events recorded by the audit log."""
    # Challenge lifecycle
    CREATED = "CREATED"
    SENT = "SENT"
    FAILED = "FAILED"
    DEGRADED = "DEGRADED"
    VERIFIED = "VERIFIED"
    INVALID = "INVALID"
    EXPIRED = "EXPIRED"
    LOCKED = "LOCKED"
    DISCARDED = "DISCARDED"

    # Gating
    COOLDOWN = "COOLDOWN"
    RATE_LIMITED = "RATE_LIMITED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"

    # Bypass
    BYPASSED = "BYPASSED"
    BYPASS_CHECKED = "BYPASS_CHECKED"
    EMERGENCY_BYPASS = "EMERGENCY_BYPASS"
    EMERGENCY_BYPASS_VALIDATED = "EMERGENCY_BYPASS_VALIDATED"
    WHITELIST_ADDED = "WHITELIST_ADDED"
    WHITELIST_REMOVED = "WHITELIST_REMOVED"

    # Sessions
    TOKEN_ISSUED = "TOKEN_ISSUED"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    TOKEN_ROTATED = "TOKEN_ROTATED"
    TOKEN_REVOKED = "TOKEN_REVOKED"
    TOKEN_REJECTED = "TOKEN_REJECTED"
