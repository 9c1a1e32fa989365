"""
Audit Logging Module
====================
Append-only, hash-chained audit trail of challenge, bypass and token events.
"""

from .event_types import AuditEventKind
from .models import AuditEvent, EvictedKindSummary
from .hashing import compute_event_hash, verify_chain_integrity
from .log import AuditLog, AuditSink

__all__ = [
    # Event Kinds
    "AuditEventKind",
    # Models
    "AuditEvent",
    "EvictedKindSummary",
    # Hashing
    "compute_event_hash",
    "verify_chain_integrity",
    # Log
    "AuditLog",
    "AuditSink",
]
