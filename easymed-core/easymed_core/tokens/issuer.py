"""
Token Issuer
============
Signed JWT access tokens and opaque, revocable refresh tokens.

Access tokens are stateless HS256 JWTs. Refresh tokens are random strings
persisted as ``RefreshTokenRecord`` keyed by their SHA-256 hash, with a
per-subject index for revoke-all.
"""

import hashlib
import secrets
import time
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple

import jwt
import structlog

from ..audit import AuditEventKind, AuditLog
from ..config import TokenConfig
from ..errors import TokenExpired, TokenInvalid, TokenRevoked
from ..storage import KeyValueStore
from .models import RefreshTokenRecord, TokenPair

logger = structlog.get_logger(__name__)

RESERVED_CLAIMS = frozenset({"sub", "iss", "aud", "iat", "exp", "nbf", "jti", "type"})

# stored records outlive expires_at so late use still reports expiry
RECORD_GRACE_SECONDS = 24 * 3600


def hash_refresh_token(token: str) -> str:
    """SHA-256 of a refresh token, used as its storage key."""
    return hashlib.sha256(token.encode()).hexdigest()


class TokenIssuer:
    """
    Mints and manages session tokens.

    Example:
        issuer = TokenIssuer(store, audit, TokenConfig(secret="..."))
        pair = issuer.issue_token_pair("user-1", {"identifier": "+919876543210"})
        access = issuer.refresh(pair.refresh_token)
        claims = issuer.verify_access_token(access)
    """

    def __init__(
        self,
        store: KeyValueStore,
        audit: AuditLog,
        config: Optional[TokenConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.audit = audit
        self.config = config or TokenConfig()
        self._clock = clock
        self._secret = self.config.secret
        if not self._secret:
            self._secret = secrets.token_urlsafe(32)
            logger.warning("JWT secret not configured, using an ephemeral secret")

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    @staticmethod
    def _record_key(token_hash: str) -> str:
        return f"refresh:{token_hash}"

    @staticmethod
    def _subject_key(subject_id: str) -> str:
        return f"refresh:subject:{subject_id}"

    @staticmethod
    def _audit_identifier(subject_id: str, claims: Dict[str, Any]) -> str:
        return claims.get("identifier") or subject_id

    def create_access_token(self, subject_id: str, claims: Optional[Dict[str, Any]] = None) -> str:
        now = self._now()
        payload = {k: v for k, v in (claims or {}).items() if k not in RESERVED_CLAIMS}
        payload.update({
            "sub": subject_id,
            "type": "access",
            "iss": self.config.issuer,
            "aud": self.config.audience,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self.config.access_ttl_seconds)).timestamp()),
            "jti": str(uuid.uuid4()),
        })
        return jwt.encode(payload, self._secret, algorithm=self.config.algorithm)

    def _create_refresh_token(self, subject_id: str, claims: Dict[str, Any]) -> str:
        token = secrets.token_urlsafe(48)
        token_hash = hash_refresh_token(token)
        now = self._now()
        ttl = self.config.refresh_ttl_seconds
        record = RefreshTokenRecord(
            token_hash=token_hash,
            subject_id=subject_id,
            claims=dict(claims),
            issued_at=now,
            expires_at=now + timedelta(seconds=ttl),
        )
        self.store.set(self._record_key(token_hash), record, ttl=ttl + RECORD_GRACE_SECONDS)

        def _index(hashes: Optional[Tuple[str, ...]]):
            updated = tuple(hashes or ()) + (token_hash,)
            return updated, None

        self.store.update(self._subject_key(subject_id), _index, ttl=ttl + RECORD_GRACE_SECONDS)
        return token

    def issue_token_pair(self, subject_id: str, claims: Optional[Dict[str, Any]] = None) -> TokenPair:
        """
        Issue an access/refresh pair for a verified subject.

        Args:
            subject_id: Stable subject identifier from the user directory
            claims: Extra claims copied into every access token
        """
        claims = dict(claims or {})
        pair = TokenPair(
            access_token=self.create_access_token(subject_id, claims),
            refresh_token=self._create_refresh_token(subject_id, claims),
            issued_at=self._now(),
            access_ttl=self.config.access_ttl_seconds,
            refresh_ttl=self.config.refresh_ttl_seconds,
        )
        self.audit.record(
            self._audit_identifier(subject_id, claims),
            AuditEventKind.TOKEN_ISSUED,
            "Token pair issued",
            success=True,
            metadata={"subject_id": subject_id},
        )
        logger.info("Token pair issued", subject_id=subject_id)
        return pair

    def _load_active(self, refresh_token: str) -> RefreshTokenRecord:
        record = self.store.get(self._record_key(hash_refresh_token(refresh_token or "")))
        if record is None:
            self._reject(refresh_token, "unknown")
            raise TokenInvalid()
        if record.revoked:
            self._reject(refresh_token, "revoked", record)
            raise TokenRevoked()
        if record.is_expired(self._now()):
            self._reject(refresh_token, "expired", record)
            raise TokenExpired()
        return record

    def _reject(self, refresh_token: str, reason: str, record: Optional[RefreshTokenRecord] = None) -> None:
        identifier = self._audit_identifier(record.subject_id, record.claims) if record else "unknown"
        self.audit.record(
            identifier,
            AuditEventKind.TOKEN_REJECTED,
            "Refresh token rejected",
            metadata={"reason": reason},
        )
        logger.info("Refresh token rejected", reason=reason)

    def refresh(self, refresh_token: str) -> str:
        """
        Mint a new access token without rotating the refresh token.

        Raises:
            TokenInvalid: unknown token
            TokenRevoked: token was revoked
            TokenExpired: token is past its lifetime
        """
        record = self._load_active(refresh_token)
        access_token = self.create_access_token(record.subject_id, record.claims)
        self.audit.record(
            self._audit_identifier(record.subject_id, record.claims),
            AuditEventKind.TOKEN_REFRESHED,
            "Access token refreshed",
            success=True,
            metadata={"subject_id": record.subject_id},
        )
        return access_token

    def rotate(self, refresh_token: str) -> TokenPair:
        """Revoke ``refresh_token`` and issue a fresh pair for the same subject."""
        record = self._load_active(refresh_token)
        self._mark_revoked(record.token_hash)
        self.audit.record(
            self._audit_identifier(record.subject_id, record.claims),
            AuditEventKind.TOKEN_ROTATED,
            "Refresh token rotated",
            success=True,
            metadata={"subject_id": record.subject_id},
        )
        return self.issue_token_pair(record.subject_id, record.claims)

    def _mark_revoked(self, token_hash: str) -> Optional[RefreshTokenRecord]:
        revoked_at = self._now()

        def _apply(record: Optional[RefreshTokenRecord]):
            if record is None or record.revoked:
                return record, None
            updated = replace(record, revoked=True, revoked_at=revoked_at)
            return updated, updated

        return self.store.update(self._record_key(token_hash), _apply)

    def revoke(self, refresh_token: str) -> bool:
        """Revoke one refresh token. Returns False if unknown or already revoked."""
        record = self._mark_revoked(hash_refresh_token(refresh_token or ""))
        if record is None:
            return False
        self.audit.record(
            self._audit_identifier(record.subject_id, record.claims),
            AuditEventKind.TOKEN_REVOKED,
            "Refresh token revoked",
            success=True,
            metadata={"subject_id": record.subject_id},
        )
        logger.info("Refresh token revoked", subject_id=record.subject_id)
        return True

    def subject_for(self, refresh_token: str) -> Optional[str]:
        """Subject a stored refresh token belongs to, revoked or not."""
        record = self.store.get(self._record_key(hash_refresh_token(refresh_token or "")))
        return record.subject_id if record else None

    def revoke_all(self, subject_id: str) -> int:
        """Revoke every refresh token of a subject. Returns the number revoked."""
        hashes = self.store.get(self._subject_key(subject_id)) or ()
        revoked = [record for record in map(self._mark_revoked, hashes) if record is not None]
        if revoked:
            self.audit.record(
                self._audit_identifier(subject_id, revoked[0].claims),
                AuditEventKind.TOKEN_REVOKED,
                "All refresh tokens revoked",
                success=True,
                metadata={"subject_id": subject_id, "count": len(revoked)},
            )
        logger.info("Refresh tokens revoked", subject_id=subject_id, count=len(revoked))
        return len(revoked)

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        """
        Validate signature, audience, issuer, type and expiry.

        Returns:
            The decoded claims

        Raises:
            TokenInvalid: bad signature, audience, issuer or type
            TokenExpired: token is past ``exp``
        """
        if not token:
            raise TokenInvalid()
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.config.algorithm],
                audience=self.config.audience,
                issuer=self.config.issuer,
                options={
                    "require": ["exp", "iat", "sub"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidTokenError as exc:
            raise TokenInvalid() from exc

        if payload.get("type") != "access":
            raise TokenInvalid()
        # expiry is checked against the injected clock
        if self._clock() >= payload["exp"]:
            raise TokenExpired()
        return payload
