"""
Audit Hashing
=============
Hash computation and chain verification for audit logs.
"""

import json
import hashlib
from datetime import datetime
from typing import Dict, Any, Optional, List, Tuple
import structlog

from .models import AuditEvent

logger = structlog.get_logger(__name__)


def compute_event_hash(
    previous_hash: Optional[str],
    timestamp: datetime,
    identifier: str,
    kind: str,
    message: str,
    success: bool,
    metadata: Dict[str, Any],
) -> str:
    """
    Compute the hash for an audit event.

    Each event's hash covers the previous event's hash, so altering or
    removing a retained event breaks every later link.

    Returns:
        SHA-256 hex digest
    """
    hash_input = json.dumps({
        "previous_hash": previous_hash,
        "timestamp": timestamp.isoformat(),
        "identifier": identifier,
        "kind": kind,
        "message": message,
        "success": success,
        "metadata": metadata,
    }, sort_keys=True, separators=(',', ':'), default=str)

    return hashlib.sha256(hash_input.encode()).hexdigest()


def verify_chain_integrity(
    events: List[AuditEvent],
    anchor: Optional[str] = None,
) -> Tuple[bool, Optional[int]]:
    """
    Verify the integrity of an audit event chain.

    Args:
        events: Events in insertion order
        anchor: Hash of the last event evicted before ``events[0]``
            (None when nothing was evicted)

    Returns:
        Tuple of (is_valid, first_invalid_index)
    """
    if not events:
        return True, None

    if events[0].previous_hash != anchor:
        return False, 0

    for i, event in enumerate(events):
        expected_hash = compute_event_hash(
            event.previous_hash,
            event.timestamp,
            event.identifier,
            event.kind,
            event.message,
            event.success,
            event.metadata,
        )

        if event.hash != expected_hash:
            logger.warning(
                "Audit chain integrity violation",
                event_id=event.id,
                index=i,
                expected_hash=expected_hash[:16],
                actual_hash=event.hash[:16],
            )
            return False, i

        if i > 0 and event.previous_hash != events[i - 1].hash:
            logger.warning(
                "Audit chain linkage broken",
                event_id=event.id,
                index=i,
            )
            return False, i

    return True, None
