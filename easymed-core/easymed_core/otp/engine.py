"""
Verification Engine
===================
Per-identifier challenge state machine over a key-value store.

    NONE -> PENDING -> (VERIFIED | EXPIRED | ATTEMPTS_EXHAUSTED) -> NONE

Each create or verify is a single atomic ``store.update`` on the
identifier's slot, so parallel verifies cannot both observe the same
attempt count and at most one of them can win a challenge.
"""

import math
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

import structlog

from ..audit import AuditEventKind, AuditLog
from ..config import OTPConfig
from ..errors import CooldownActive
from ..identity import mask_identifier
from ..storage import KeyValueStore
from .codes import code_digest, code_matches, new_code, new_salt
from .models import (
    Challenge,
    ChallengePurpose,
    ChallengeSlot,
    VerificationResult,
    VerificationStatus,
)

logger = structlog.get_logger(__name__)


class VerificationEngine:
    """
    Creates, verifies and discards OTP challenges.

    Only an identifier-bound digest of a code is persisted. The slot outlives its
    challenge until the resend cooldown has passed, so a new challenge
    cannot be created inside the cooldown even after a successful verify.
    """

    KEY_PREFIX = "challenge:"

    def __init__(
        self,
        store: KeyValueStore,
        audit: AuditLog,
        config: Optional[OTPConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.audit = audit
        self.config = config or OTPConfig()
        self._clock = clock

    def _key(self, identifier: str) -> str:
        return f"{self.KEY_PREFIX}{identifier}"

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def _cooldown_remaining(self, slot: Optional[ChallengeSlot], now: datetime) -> int:
        if slot is None:
            return 0
        elapsed = (now - slot.last_created_at).total_seconds()
        remaining = self.config.resend_cooldown_seconds - elapsed
        return int(math.ceil(remaining)) if remaining > 0 else 0

    def _reject_cooldown(self, identifier: str, retry_after: int) -> None:
        self.audit.record(
            identifier,
            AuditEventKind.COOLDOWN,
            "Challenge requested inside resend cooldown",
            metadata={"retry_after": retry_after},
        )
        logger.info(
            "Resend cooldown active",
            identifier=mask_identifier(identifier),
            retry_after=retry_after,
        )
        raise CooldownActive(retry_after=retry_after)

    def check_cooldown(self, identifier: str) -> None:
        """
        Read-only cooldown pre-check.

        Raises:
            CooldownActive: if a challenge was created within the resend interval
        """
        retry_after = self._cooldown_remaining(self.store.get(self._key(identifier)), self._now())
        if retry_after:
            self._reject_cooldown(identifier, retry_after)

    def get_challenge(self, identifier: str) -> Optional[Challenge]:
        """Pending, unexpired challenge for an identifier, if any."""
        slot = self.store.get(self._key(identifier))
        if slot is None or slot.challenge is None:
            return None
        if slot.challenge.is_expired(self._now()):
            return None
        return slot.challenge

    def create_challenge(
        self,
        identifier: str,
        purpose: ChallengePurpose = ChallengePurpose.LOGIN,
        ttl: Optional[int] = None,
        max_attempts: Optional[int] = None,
        channel: str = "sms",
    ) -> Tuple[str, Challenge]:
        """
        Create a new challenge, replacing any pending one.

        Args:
            identifier: Normalized identifier
            purpose: Login or registration
            ttl: Lifetime in seconds (defaults to config)
            max_attempts: Wrong guesses allowed (defaults to config)
            channel: Delivery channel the code is destined for

        Returns:
            Tuple of (raw code, challenge). The raw code is never stored.

        Raises:
            CooldownActive: if a prior challenge was created within the
                resend interval, even if it has since expired
        """
        ttl = ttl if ttl is not None else self.config.ttl_seconds
        max_attempts = max_attempts if max_attempts is not None else self.config.max_attempts
        now = self._now()

        code = new_code(self.config)
        salt = new_salt()
        challenge = Challenge(
            identifier=identifier,
            secret_hash=code_digest(identifier, code, salt),
            salt=salt,
            purpose=ChallengePurpose(purpose),
            created_at=now,
            expires_at=now + timedelta(seconds=ttl),
            attempt_count=0,
            max_attempts=max_attempts,
            channel=channel,
        )

        def _apply(slot: Optional[ChallengeSlot]):
            retry_after = self._cooldown_remaining(slot, now)
            if retry_after:
                return slot, retry_after
            return ChallengeSlot(challenge=challenge, last_created_at=now), 0

        retry_after = self.store.update(
            self._key(identifier),
            _apply,
            ttl=max(ttl, self.config.resend_cooldown_seconds),
        )
        if retry_after:
            self._reject_cooldown(identifier, retry_after)

        self.audit.record(
            identifier,
            AuditEventKind.CREATED,
            "OTP challenge created",
            success=True,
            metadata={
                "purpose": challenge.purpose.value,
                "channel": channel,
                "expires_in": ttl,
                "max_attempts": max_attempts,
            },
        )
        logger.info(
            "OTP challenge created",
            identifier=mask_identifier(identifier),
            purpose=challenge.purpose.value,
            ttl=ttl,
        )
        return code, challenge

    def verify_challenge(self, identifier: str, candidate: str) -> VerificationResult:
        """
        Check a candidate code against the pending challenge.

        Expired and exhausted challenges are deleted on access. A mismatch
        increments the attempt count; reaching ``max_attempts`` deletes the
        challenge in the same step.
        """
        candidate = str(candidate).strip() if candidate is not None else ""
        now = self._now()

        def _apply(slot: Optional[ChallengeSlot]):
            if slot is None or slot.challenge is None:
                return slot, VerificationResult(VerificationStatus.NOT_FOUND)

            challenge = slot.challenge
            cleared = replace(slot, challenge=None)

            if challenge.is_expired(now):
                return cleared, VerificationResult(VerificationStatus.EXPIRED, 0, challenge)

            if challenge.attempt_count >= challenge.max_attempts:
                return cleared, VerificationResult(
                    VerificationStatus.ATTEMPTS_EXHAUSTED, 0, challenge
                )

            if code_matches(identifier, candidate, challenge.salt, challenge.secret_hash):
                return cleared, VerificationResult(
                    VerificationStatus.VERIFIED, challenge.remaining_attempts, challenge
                )

            updated = replace(challenge, attempt_count=challenge.attempt_count + 1)
            result = VerificationResult(
                VerificationStatus.INVALID, updated.remaining_attempts, updated
            )
            if updated.remaining_attempts == 0:
                return cleared, result
            return replace(slot, challenge=updated), result

        result = self.store.update(self._key(identifier), _apply)
        self._audit_verification(identifier, result)
        return result

    def _audit_verification(self, identifier: str, result: VerificationResult) -> None:
        masked = mask_identifier(identifier)
        status = result.status

        if status == VerificationStatus.VERIFIED:
            self.audit.record(identifier, AuditEventKind.VERIFIED, "OTP verified", success=True)
            logger.info("OTP verified", identifier=masked)
        elif status == VerificationStatus.NOT_FOUND:
            self.audit.record(identifier, AuditEventKind.FAILED, "No pending challenge")
            logger.info("No pending challenge", identifier=masked)
        elif status == VerificationStatus.EXPIRED:
            self.audit.record(identifier, AuditEventKind.EXPIRED, "OTP challenge expired")
            logger.info("OTP challenge expired", identifier=masked)
        elif status == VerificationStatus.ATTEMPTS_EXHAUSTED or result.remaining_attempts == 0:
            self.audit.record(
                identifier,
                AuditEventKind.LOCKED,
                "OTP challenge locked after too many attempts",
                metadata={"attempts": result.challenge.attempt_count if result.challenge else None},
            )
            logger.warning("OTP challenge locked", identifier=masked)
        else:
            self.audit.record(
                identifier,
                AuditEventKind.INVALID,
                "Invalid OTP",
                metadata={"remaining_attempts": result.remaining_attempts},
            )
            logger.info(
                "Invalid OTP",
                identifier=masked,
                remaining_attempts=result.remaining_attempts,
            )

    def discard_challenge(self, identifier: str) -> bool:
        """
        Remove a pending challenge. The cooldown marker is kept.

        Returns:
            True if a challenge was discarded
        """

        def _apply(slot: Optional[ChallengeSlot]):
            if slot is None or slot.challenge is None:
                return slot, False
            return replace(slot, challenge=None), True

        discarded = self.store.update(self._key(identifier), _apply)
        if discarded:
            self.audit.record(identifier, AuditEventKind.DISCARDED, "OTP challenge discarded")
            logger.info("OTP challenge discarded", identifier=mask_identifier(identifier))
        return discarded
