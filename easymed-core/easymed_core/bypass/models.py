"""
Bypass Models
=============
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class BypassEntry:
    """
    An allow-list entry or an emergency bypass grant.

    Allow-list entries never expire. Emergency grants carry the raw
    ``token`` only in the value returned at issuance; stored copies keep
    the hash.
    """
    identifier: str
    reason: str
    created_at: datetime
    expires_at: Optional[datetime] = None
    token: Optional[str] = None
    token_hash: Optional[str] = None

    @property
    def is_emergency(self) -> bool:
        return self.expires_at is not None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "reason": self.reason,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "token": self.token,
        }
