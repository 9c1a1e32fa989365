"""
EasyMed Core Library
====================
OTP identity verification and session issuance for EasyMedPro services.
"""

__version__ = "1.0.0"

# Configuration
from easymed_core.config import (
    EasyMedSettings,
    OTPConfig,
    RateLimitConfig,
    QuotaConfig,
    TokenConfig,
    DeliveryConfig,
    BypassConfig,
)

# Errors
from easymed_core.errors import (
    ErrorKind,
    EasyMedAuthError,
    InvalidIdentifier,
    CooldownActive,
    RateLimited,
    QuotaExceeded,
    ChallengeNotFound,
    ChallengeExpired,
    AttemptsExhausted,
    InvalidCode,
    TokenInvalid,
    TokenRevoked,
    TokenExpired,
    ProviderNotConfigured,
)

# Identity
from easymed_core.identity import (
    IdentifierKind,
    normalize_identifier,
    identifier_kind,
    mask_identifier,
)

# Storage
from easymed_core.storage import KeyValueStore, InMemoryStore

# Audit
from easymed_core.audit import (
    AuditEventKind,
    AuditEvent,
    AuditLog,
    AuditSink,
    compute_event_hash,
    verify_chain_integrity,
)

# OTP
from easymed_core.otp import (
    ChallengePurpose,
    Challenge,
    VerificationStatus,
    VerificationResult,
    VerificationEngine,
)

# Rate Limiting
from easymed_core.rate_limit import (
    FixedWindowLimiter,
    RateLimitPolicy,
    RateLimitInfo,
    RateLimitResult,
)

# Quota
from easymed_core.quota import QuotaMonitor, QuotaDecision, QuotaScope, QuotaPeriod

# Delivery
from easymed_core.providers import (
    Channel,
    DeliveryResult,
    BaseDeliveryAdapter,
    TwilioAdapter,
    FederatedPhoneIdentityAdapter,
    EmailRelayAdapter,
    LocalDemoAdapter,
)
from easymed_core.delivery import (
    ProviderKind,
    DeliveryOutcome,
    DeliveryOrchestrator,
    ProviderBreaker,
)

# Bypass
from easymed_core.bypass import BypassEntry, BypassRegistry

# Tokens
from easymed_core.tokens import TokenPair, RefreshTokenRecord, TokenIssuer

# Directory
from easymed_core.directory import Subject, UserDirectory, InMemoryUserDirectory

# Service
from easymed_core.service import (
    ChallengeResponse,
    SubmitResponse,
    VerificationService,
    create_verification_service,
)

# Logging
from easymed_core.logging_config import setup_logging

# HTTP
from easymed_core.health import create_health_router
from easymed_core.api import create_auth_router, create_app

__all__ = [
    "__version__",
    # Configuration
    "EasyMedSettings",
    "OTPConfig",
    "RateLimitConfig",
    "QuotaConfig",
    "TokenConfig",
    "DeliveryConfig",
    "BypassConfig",
    # Errors
    "ErrorKind",
    "EasyMedAuthError",
    "InvalidIdentifier",
    "CooldownActive",
    "RateLimited",
    "QuotaExceeded",
    "ChallengeNotFound",
    "ChallengeExpired",
    "AttemptsExhausted",
    "InvalidCode",
    "TokenInvalid",
    "TokenRevoked",
    "TokenExpired",
    "ProviderNotConfigured",
    # Identity
    "IdentifierKind",
    "normalize_identifier",
    "identifier_kind",
    "mask_identifier",
    # Storage
    "KeyValueStore",
    "InMemoryStore",
    # Audit
    "AuditEventKind",
    "AuditEvent",
    "AuditLog",
    "AuditSink",
    "compute_event_hash",
    "verify_chain_integrity",
    # OTP
    "ChallengePurpose",
    "Challenge",
    "VerificationStatus",
    "VerificationResult",
    "VerificationEngine",
    # Rate Limiting
    "FixedWindowLimiter",
    "RateLimitPolicy",
    "RateLimitInfo",
    "RateLimitResult",
    # Quota
    "QuotaMonitor",
    "QuotaDecision",
    "QuotaScope",
    "QuotaPeriod",
    # Delivery
    "Channel",
    "DeliveryResult",
    "BaseDeliveryAdapter",
    "TwilioAdapter",
    "FederatedPhoneIdentityAdapter",
    "EmailRelayAdapter",
    "LocalDemoAdapter",
    "ProviderKind",
    "DeliveryOutcome",
    "DeliveryOrchestrator",
    "ProviderBreaker",
    # Bypass
    "BypassEntry",
    "BypassRegistry",
    # Tokens
    "TokenPair",
    "RefreshTokenRecord",
    "TokenIssuer",
    # Directory
    "Subject",
    "UserDirectory",
    "InMemoryUserDirectory",
    # Service
    "ChallengeResponse",
    "SubmitResponse",
    "VerificationService",
    "create_verification_service",
    # Logging
    "setup_logging",
    # HTTP
    "create_health_router",
    "create_auth_router",
    "create_app",
]
