"""
Token Models
============
Session token pair and persisted refresh token records.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class TokenPair:
    """Access and refresh token issued after verification."""
    access_token: str
    refresh_token: str
    issued_at: datetime
    access_ttl: int
    refresh_ttl: int
    token_type: str = "Bearer"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_in": self.access_ttl,
            "refresh_expires_in": self.refresh_ttl,
            "issued_at": self.issued_at.isoformat(),
        }


@dataclass(frozen=True)
class RefreshTokenRecord:
    """Stored refresh token metadata. The raw token is never kept."""
    token_hash: str
    subject_id: str
    claims: Dict[str, Any] = field(default_factory=dict)
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    revoked: bool = False
    revoked_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at
