"""
Audit Models
=============
Data models for audit log entries.
"""

from datetime import datetime
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict


@dataclass
class AuditEvent:
    """An audit log entry with hash chain support."""
    id: str
    timestamp: datetime
    identifier: str
    kind: str
    message: str
    success: bool
    metadata: Dict[str, Any]
    hash: str
    previous_hash: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        d = asdict(self)
        d["timestamp"] = self.timestamp.isoformat()
        return d


@dataclass
class EvictedKindSummary:
    """What remains of events that fell out of the ring buffer."""
    kind: str
    count: int
    first_timestamp: datetime
    last_timestamp: datetime
