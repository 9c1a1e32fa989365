"""
Verification Service
====================
Facade wiring normalization, rate limits, quota, bypass, challenges,
delivery, the user directory and token issuance into the inbound
operations exposed over HTTP.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

import httpx
import structlog

from .audit import AuditEventKind, AuditLog, AuditSink
from .bypass import BypassEntry, BypassRegistry
from .config import EasyMedSettings
from .delivery import (
    BreakerConfig,
    DeliveryOrchestrator,
    DeliveryOutcome,
    ProviderKind,
    render_email,
    render_sms,
)
from .directory import InMemoryUserDirectory, UserDirectory
from .errors import (
    AttemptsExhausted,
    ChallengeExpired,
    ChallengeNotFound,
    InvalidCode,
    QuotaExceeded,
    RateLimited,
)
from .identity import IdentifierKind, identifier_kind, mask_identifier, normalize_identifier
from .otp import Challenge, ChallengePurpose, VerificationEngine, VerificationStatus
from .providers import (
    Channel,
    EmailRelayAdapter,
    FederatedPhoneIdentityAdapter,
    LocalDemoAdapter,
    TwilioAdapter,
)
from .quota import QuotaDecision, QuotaMonitor
from .rate_limit import RateLimitPolicy
from .storage import InMemoryStore, KeyValueStore
from .tokens import TokenIssuer, TokenPair

logger = structlog.get_logger(__name__)


@dataclass
class ChallengeResponse:
    accepted: bool
    identifier: str  # masked
    channel: str
    expires_in: int
    cooldown_seconds: int
    degraded: bool = False
    bypassed: bool = False
    demo_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "accepted": self.accepted,
            "identifier": self.identifier,
            "channel": self.channel,
            "expires_in": self.expires_in,
            "cooldown_seconds": self.cooldown_seconds,
            "degraded": self.degraded,
            "bypassed": self.bypassed,
        }
        if self.demo_code is not None:
            body["demo_code"] = self.demo_code
        return body


@dataclass
class SubmitResponse:
    verified: bool
    subject_id: str
    tokens: TokenPair
    bypassed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verified": self.verified,
            "subject_id": self.subject_id,
            "bypassed": self.bypassed,
            "tokens": self.tokens.to_dict(),
        }


_LOCK_STRIPES = 64

_VERIFICATION_ERRORS = {
    VerificationStatus.NOT_FOUND: ChallengeNotFound,
    VerificationStatus.EXPIRED: ChallengeExpired,
    VerificationStatus.ATTEMPTS_EXHAUSTED: AttemptsExhausted,
}


class VerificationService:
    """
    Inbound operations of the identity verification engine.

    All collaborators are injected; ``create_verification_service`` builds
    the default in-memory wiring from settings.
    """

    def __init__(
        self,
        settings: EasyMedSettings,
        audit: AuditLog,
        engine: VerificationEngine,
        rate_limits: RateLimitPolicy,
        quota: QuotaMonitor,
        bypass: BypassRegistry,
        orchestrator: DeliveryOrchestrator,
        directory: UserDirectory,
        issuer: TokenIssuer,
    ):
        self.settings = settings
        self.audit = audit
        self.engine = engine
        self.rate_limits = rate_limits
        self.quota = quota
        self.bypass = bypass
        self.orchestrator = orchestrator
        self.directory = directory
        self.issuer = issuer
        self._identifier_locks = [threading.Lock() for _ in range(_LOCK_STRIPES)]

    async def startup(self) -> None:
        await self.orchestrator.initialize()
        logger.info("Verification service started", environment=self.settings.environment)

    async def shutdown(self) -> None:
        await self.orchestrator.close()
        logger.info("Verification service stopped")

    def _normalize(self, identifier: str) -> str:
        return normalize_identifier(identifier, self.settings.otp.country_code)

    def _rate_limited(self, identifier: str, check: Callable[[str], Any], key: str) -> None:
        try:
            check(key)
        except RateLimited as e:
            self.audit.record(
                identifier,
                AuditEventKind.RATE_LIMITED,
                "Rate limit exceeded",
                metadata={"retry_after": e.retry_after},
            )
            raise

    def _identifier_lock(self, identifier: str) -> threading.Lock:
        return self._identifier_locks[hash(identifier) % _LOCK_STRIPES]

    def open_challenge(
        self,
        identifier: str,
        purpose: ChallengePurpose = ChallengePurpose.LOGIN,
        channel: Channel = Channel.SMS,
    ) -> Tuple[str, Challenge, QuotaDecision]:
        """
        Charge the send window and quota, then create the challenge.

        Requests for one identifier run one at a time here, so a request
        refused by the cooldown has spent nothing.

        Returns:
            Tuple of (raw code, challenge, quota decision)
        """
        with self._identifier_lock(identifier):
            self.engine.check_cooldown(identifier)
            self._rate_limited(identifier, self.rate_limits.check_identifier_send, identifier)

            decision = self.quota.check_and_reserve(identifier)
            if decision.identifier_exhausted:
                self.audit.record(
                    identifier,
                    AuditEventKind.QUOTA_EXCEEDED,
                    "Delivery quota exceeded",
                    metadata={"period": decision.period.value, "limit": decision.limit, "used": decision.used},
                )
                raise QuotaExceeded(retry_after=self.quota.seconds_until_reset(decision.period))

            code, challenge = self.engine.create_challenge(
                identifier,
                purpose=purpose,
                channel=Channel(channel).value,
            )
        return code, challenge, decision

    async def request_challenge(
        self,
        identifier: str,
        purpose: ChallengePurpose = ChallengePurpose.LOGIN,
        client_address: str = "unknown",
        language: str = "english",
    ) -> ChallengeResponse:
        """
        Issue and deliver a challenge.

        Raises:
            InvalidIdentifier: malformed phone number or email
            RateLimited: address or identifier window exhausted
            CooldownActive: requested inside the resend interval
            QuotaExceeded: identifier delivery budget spent
        """
        normalized = self._normalize(identifier)
        self._rate_limited(normalized, self.rate_limits.check_address_request, client_address)

        kind = identifier_kind(normalized)
        channel = Channel.EMAIL if kind == IdentifierKind.EMAIL else Channel.SMS
        otp_config = self.settings.otp
        masked = mask_identifier(normalized)

        if self.bypass.is_bypassed(normalized):
            self.audit.record(
                normalized,
                AuditEventKind.BYPASSED,
                "Challenge delivery skipped for bypassed identifier",
                success=True,
                metadata={"purpose": ChallengePurpose(purpose).value},
            )
            logger.info("Challenge bypassed", identifier=masked)
            return ChallengeResponse(
                accepted=True,
                identifier=masked,
                channel=channel.value,
                expires_in=otp_config.ttl_seconds,
                cooldown_seconds=0,
                bypassed=True,
            )

        code, _, decision = self.open_challenge(normalized, purpose, channel)

        metadata: Dict[str, Any] = {"code": code, "language": language}
        brand = self.settings.delivery.brand
        if channel == Channel.EMAIL:
            subject, message = render_email(code, brand, otp_config.ttl_seconds)
            metadata["subject"] = subject
        else:
            message = render_sms(code, language, brand, otp_config.ttl_seconds)

        outcome = await self.orchestrator.deliver(
            normalized,
            message,
            channel,
            metadata,
            primary_exhausted=decision.global_exhausted,
        )
        self.quota.record_outcome(normalized, outcome.accepted)
        self._audit_delivery(normalized, outcome)

        return ChallengeResponse(
            accepted=True,
            identifier=masked,
            channel=channel.value,
            expires_in=otp_config.ttl_seconds,
            cooldown_seconds=otp_config.resend_cooldown_seconds,
            degraded=outcome.degraded or not outcome.accepted,
            demo_code=outcome.demo_code if self.settings.expose_demo_code else None,
        )

    def _audit_delivery(self, identifier: str, outcome: DeliveryOutcome) -> None:
        attempts = [
            {"provider": a.provider, "outcome": a.outcome, "reason": a.reason}
            for a in outcome.attempts
        ]
        if not outcome.accepted:
            self.audit.record(
                identifier,
                AuditEventKind.FAILED,
                "No provider accepted the challenge",
                metadata={"attempts": attempts},
            )
        elif outcome.degraded:
            self.audit.record(
                identifier,
                AuditEventKind.DEGRADED,
                "Challenge delivered in degraded mode",
                success=True,
                metadata={"provider": outcome.provider, "attempts": attempts},
            )
        else:
            self.audit.record(
                identifier,
                AuditEventKind.SENT,
                "Challenge delivered",
                success=True,
                metadata={
                    "provider": outcome.provider,
                    "kind": outcome.kind.value if outcome.kind else None,
                    "provider_ref": outcome.provider_ref,
                },
            )

    async def submit_challenge(
        self,
        identifier: str,
        code: str,
        client_address: str = "unknown",
        bypass_token: Optional[str] = None,
    ) -> SubmitResponse:
        """
        Verify a code and issue session tokens.

        Raises:
            InvalidIdentifier: malformed phone number or email
            RateLimited: address or identifier window exhausted
            ChallengeNotFound: no pending challenge
            ChallengeExpired: challenge lifetime elapsed
            AttemptsExhausted: challenge locked
            InvalidCode: wrong code, with ``remaining_attempts``
        """
        normalized = self._normalize(identifier)
        self._rate_limited(normalized, self.rate_limits.check_address_verify, client_address)

        # emergency grants only count with their token
        bypassed = self.bypass.is_bypassed(normalized, include_emergency=False) or bool(
            bypass_token and self.bypass.validate_emergency_bypass(bypass_token, normalized)
        )

        if bypassed:
            self.audit.record(
                normalized,
                AuditEventKind.BYPASSED,
                "Verification skipped for bypassed identifier",
                success=True,
            )
        else:
            self._rate_limited(normalized, self.rate_limits.check_identifier_verify, normalized)
            result = self.engine.verify_challenge(normalized, code)
            if result.status == VerificationStatus.INVALID:
                raise InvalidCode(remaining_attempts=result.remaining_attempts)
            if not result.verified:
                error_cls = _VERIFICATION_ERRORS[result.status]
                raise error_cls(remaining_attempts=0 if error_cls is AttemptsExhausted else None)

        subject = self.directory.find_or_create_subject(normalized, identifier_kind(normalized))
        tokens = self.issuer.issue_token_pair(subject.subject_id, subject.claims)
        logger.info(
            "Identifier verified",
            identifier=mask_identifier(normalized),
            subject_id=subject.subject_id,
            bypassed=bypassed,
        )
        return SubmitResponse(
            verified=True,
            subject_id=subject.subject_id,
            tokens=tokens,
            bypassed=bypassed,
        )

    async def refresh_access_token(self, refresh_token: str) -> str:
        return self.issuer.refresh(refresh_token)

    async def logout(self, refresh_token: str, all_devices: bool = False) -> int:
        """Revoke one refresh token, or every token of its subject."""
        if all_devices:
            subject_id = self.issuer.subject_for(refresh_token)
            return self.issuer.revoke_all(subject_id) if subject_id else 0
        return 1 if self.issuer.revoke(refresh_token) else 0

    def issue_emergency_bypass(self, identifier: str, reason: str) -> BypassEntry:
        return self.bypass.issue_emergency_bypass(self._normalize(identifier), reason)

    def quota_report(self, identifier: Optional[str] = None) -> Dict[str, Any]:
        if identifier:
            return self.quota.usage(self._normalize(identifier))
        return self.quota.statistics()

    async def diagnostic_report(self) -> Dict[str, Any]:
        """Audit statistics, quota and provider state for admin tooling."""
        report = self.audit.diagnostic_report()
        report["quota"] = self.quota.statistics()
        report["providers"] = await self.orchestrator.health()
        report["environment"] = self.settings.environment
        return report


def build_orchestrator(
    settings: EasyMedSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> DeliveryOrchestrator:
    """Default provider priority list from delivery settings."""
    delivery = settings.delivery
    providers = [
        (ProviderKind.PRIMARY, TwilioAdapter(
            {
                "account_sid": delivery.twilio_account_sid,
                "auth_token": delivery.twilio_auth_token,
                "from_number": delivery.twilio_phone_number,
                "messaging_service_sid": delivery.twilio_messaging_service_sid,
            },
            transport=transport,
        )),
        (ProviderKind.PRIMARY, EmailRelayAdapter(
            {
                "url": delivery.email_relay_url,
                "api_key": delivery.email_relay_api_key,
                "sender": delivery.email_sender,
            },
            transport=transport,
        )),
        (ProviderKind.SECONDARY, FederatedPhoneIdentityAdapter(
            {
                "base_url": delivery.federated_base_url,
                "api_key": delivery.federated_api_key,
                "project_id": delivery.federated_project_id,
            },
            transport=transport,
        )),
        (ProviderKind.LOCAL_DEMO, LocalDemoAdapter({"log_codes": not settings.is_production})),
    ]
    return DeliveryOrchestrator(
        providers,
        timeout_seconds=delivery.timeout_seconds,
        breaker_config=BreakerConfig(
            fail_threshold=delivery.breaker_fail_threshold,
            timeout=delivery.breaker_timeout_seconds,
        ),
    )


def create_verification_service(
    settings: Optional[EasyMedSettings] = None,
    store: Optional[KeyValueStore] = None,
    directory: Optional[UserDirectory] = None,
    audit_sinks: Optional[Iterable[AuditSink]] = None,
    orchestrator: Optional[DeliveryOrchestrator] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Callable[[], float] = time.time,
) -> VerificationService:
    """
    Build a service with the default in-memory wiring.

    Args:
        settings: Defaults to ``EasyMedSettings.from_env()``
        store: Shared key-value store (in-memory by default)
        directory: User directory (demo users outside production)
        audit_sinks: External audit collaborators
        orchestrator: Prebuilt delivery orchestrator
        transport: httpx transport handed to network adapters
        clock: Time source shared by every component
    """
    settings = settings or EasyMedSettings.from_env()
    if settings.is_production and not settings.tokens.secret:
        raise ValueError("JWT_SECRET must be set in production")

    store = store if store is not None else InMemoryStore(clock=clock)
    audit = AuditLog(max_entries=settings.audit_buffer_size, sinks=audit_sinks, clock=clock)
    cc = settings.otp.country_code

    if directory is None:
        directory = (
            InMemoryUserDirectory(country_code=cc)
            if settings.is_production
            else InMemoryUserDirectory.with_demo_users(cc)
        )

    return VerificationService(
        settings=settings,
        audit=audit,
        engine=VerificationEngine(store, audit, settings.otp, clock=clock),
        rate_limits=RateLimitPolicy(store, settings.rate_limit, clock=clock),
        quota=QuotaMonitor(store, settings.quota, clock=clock),
        bypass=BypassRegistry(
            store,
            audit,
            identifiers=settings.bypass.identifiers,
            emergency_ttl_seconds=settings.bypass.emergency_ttl_seconds,
            country_code=cc,
            clock=clock,
        ),
        orchestrator=orchestrator or build_orchestrator(settings, transport),
        directory=directory,
        issuer=TokenIssuer(store, audit, settings.tokens, clock=clock),
    )


__all__ = [
    "ChallengeResponse",
    "SubmitResponse",
    "VerificationService",
    "build_orchestrator",
    "create_verification_service",
]
