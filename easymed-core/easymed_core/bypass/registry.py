"""
Bypass Registry
===============
Allow-listed identifiers and time-boxed emergency bypass tokens.

Every check and issuance is audited whatever the outcome.
"""

import hashlib
import hmac
import secrets
import threading
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Set

import structlog

from ..audit import AuditEventKind, AuditLog
from ..errors import InvalidIdentifier
from ..identity import mask_identifier, normalize_identifier
from ..storage import KeyValueStore
from .models import BypassEntry

logger = structlog.get_logger(__name__)

EMERGENCY_TOKEN_BYTES = 32


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class BypassRegistry:
    """
    Decides whether an identifier skips challenge delivery and verification.

    Example:
        registry = BypassRegistry(store, audit, identifiers=["9876543210"])
        registry.is_bypassed("+919876543210")  # True
        entry = registry.issue_emergency_bypass("+919812345678", "SMS outage")
        registry.validate_emergency_bypass(entry.token, "+919812345678")  # True
    """

    def __init__(
        self,
        store: KeyValueStore,
        audit: AuditLog,
        identifiers: Optional[Iterable[str]] = None,
        emergency_ttl_seconds: int = 24 * 3600,
        country_code: str = "91",
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.audit = audit
        self.emergency_ttl_seconds = emergency_ttl_seconds
        self.country_code = country_code
        self._clock = clock
        self._lock = threading.Lock()
        self._allow_list: Set[str] = set()

        for raw in identifiers or []:
            try:
                self._allow_list.add(normalize_identifier(raw, country_code))
            except InvalidIdentifier:
                logger.warning("Ignoring invalid bypass identifier", identifier=mask_identifier(str(raw)))

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    @staticmethod
    def _grant_key(identifier: str) -> str:
        return f"bypass:emergency:{identifier}"

    @staticmethod
    def _token_key(token_hash: str) -> str:
        return f"bypass:token:{token_hash}"

    def _live_grant(self, identifier: str) -> Optional[BypassEntry]:
        entry = self.store.get(self._grant_key(identifier))
        if entry is None or entry.is_expired(self._now()):
            return None
        return entry

    def is_bypassed(self, identifier: str, include_emergency: bool = True) -> bool:
        """
        Check the allow-list, then live emergency grants.

        Args:
            identifier: Normalized identifier
            include_emergency: Also honour a live emergency grant without
                its token. Verification passes False and validates the
                token instead.
        """
        with self._lock:
            allow_listed = identifier in self._allow_list

        source = None
        if allow_listed:
            source = "allow_list"
        elif include_emergency and self._live_grant(identifier) is not None:
            source = "emergency"

        self.audit.record(
            identifier,
            AuditEventKind.BYPASS_CHECKED,
            "Bypass active" if source else "Bypass not active",
            success=source is not None,
            metadata={"source": source},
        )
        return source is not None

    def issue_emergency_bypass(self, identifier: str, reason: str) -> BypassEntry:
        """
        Issue a time-boxed bypass token bound to one identifier.

        Returns:
            BypassEntry carrying the raw token. Only its hash is stored.
        """
        token = secrets.token_urlsafe(EMERGENCY_TOKEN_BYTES)
        token_hash = _hash_token(token)
        now = self._now()
        entry = BypassEntry(
            identifier=identifier,
            reason=reason,
            created_at=now,
            expires_at=now + timedelta(seconds=self.emergency_ttl_seconds),
            token_hash=token_hash,
        )

        self.store.set(self._grant_key(identifier), entry, ttl=self.emergency_ttl_seconds)
        self.store.set(self._token_key(token_hash), entry, ttl=self.emergency_ttl_seconds)

        self.audit.record(
            identifier,
            AuditEventKind.EMERGENCY_BYPASS,
            "Emergency bypass issued",
            success=True,
            metadata={"reason": reason, "expires_at": entry.expires_at.isoformat()},
        )
        logger.warning(
            "Emergency bypass issued",
            identifier=mask_identifier(identifier),
            reason=reason,
            ttl=self.emergency_ttl_seconds,
        )
        return replace(entry, token=token)

    def validate_emergency_bypass(self, token: str, identifier: str) -> bool:
        """Token must exist, be bound to ``identifier`` and be unexpired."""
        valid = False
        reason = "unknown_token"
        if token:
            entry = self.store.get(self._token_key(_hash_token(token)))
            if entry is not None:
                if entry.is_expired(self._now()):
                    reason = "expired"
                elif not hmac.compare_digest(entry.identifier, identifier):
                    reason = "identifier_mismatch"
                else:
                    valid = True
                    reason = None

        self.audit.record(
            identifier,
            AuditEventKind.EMERGENCY_BYPASS_VALIDATED,
            "Emergency bypass accepted" if valid else "Emergency bypass rejected",
            success=valid,
            metadata={"reason": reason},
        )
        return valid

    def add_identifier(self, raw: str, reason: str = "admin") -> str:
        """Add an identifier to the allow-list. Returns the normalized form."""
        identifier = normalize_identifier(raw, self.country_code)
        with self._lock:
            self._allow_list.add(identifier)
        self.audit.record(
            identifier,
            AuditEventKind.WHITELIST_ADDED,
            "Identifier added to bypass allow-list",
            success=True,
            metadata={"reason": reason},
        )
        logger.info("Bypass identifier added", identifier=mask_identifier(identifier))
        return identifier

    def remove_identifier(self, raw: str) -> bool:
        identifier = normalize_identifier(raw, self.country_code)
        with self._lock:
            removed = identifier in self._allow_list
            self._allow_list.discard(identifier)
        self.audit.record(
            identifier,
            AuditEventKind.WHITELIST_REMOVED,
            "Identifier removed from bypass allow-list",
            success=removed,
        )
        logger.info("Bypass identifier removed", identifier=mask_identifier(identifier), removed=removed)
        return removed

    def list_identifiers(self) -> List[str]:
        with self._lock:
            return sorted(self._allow_list)
