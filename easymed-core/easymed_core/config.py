"""
Configuration
=============
Environment-driven settings for the OTP verification and session engine.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class OTPConfig:
    """Challenge generation and verification settings."""
    length: int = 6
    ttl_seconds: int = 600  # 10 minutes
    max_attempts: int = 3
    resend_cooldown_seconds: int = 60
    country_code: str = "91"


@dataclass
class RateLimitConfig:
    """Abuse-protection windows (count per window seconds)."""
    address_requests: int = 5
    address_request_window: int = 900
    address_verifies: int = 30
    address_verify_window: int = 900
    identifier_sends: int = 5
    identifier_send_window: int = 3600
    identifier_verifies: int = 10
    identifier_verify_window: int = 900


@dataclass
class QuotaConfig:
    """Provider delivery budget per period."""
    identifier_hourly: int = 5
    identifier_daily: int = 10
    identifier_monthly: int = 100
    global_hourly: int = 50
    global_daily: int = 100
    global_monthly: int = 1000
    alert_threshold: float = 0.8


@dataclass
class TokenConfig:
    """Access/refresh token settings."""
    secret: str = ""
    algorithm: str = "HS256"
    issuer: str = "easymedpro"
    audience: str = "easymedpro-users"
    access_ttl_seconds: int = 900
    refresh_ttl_seconds: int = 7 * 24 * 3600


@dataclass
class DeliveryConfig:
    """Provider credentials and delivery behaviour."""
    timeout_seconds: float = 10.0
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None
    twilio_messaging_service_sid: Optional[str] = None
    federated_base_url: Optional[str] = None
    federated_api_key: Optional[str] = None
    federated_project_id: Optional[str] = None
    email_relay_url: Optional[str] = None
    email_relay_api_key: Optional[str] = None
    email_sender: str = "noreply@easymedpro.com"
    brand: str = "EasyMedPro"
    breaker_fail_threshold: int = 3
    breaker_timeout_seconds: float = 60.0

    @property
    def twilio_configured(self) -> bool:
        return bool(
            self.twilio_account_sid
            and self.twilio_auth_token
            and (self.twilio_phone_number or self.twilio_messaging_service_sid)
        )

    @property
    def federated_configured(self) -> bool:
        return bool(self.federated_base_url and self.federated_api_key)

    @property
    def email_configured(self) -> bool:
        return bool(self.email_relay_url and self.email_relay_api_key)


@dataclass
class BypassConfig:
    """Allow-list and emergency bypass settings."""
    identifiers: List[str] = field(default_factory=list)
    emergency_ttl_seconds: int = 24 * 3600


@dataclass
class EasyMedSettings:
    """Aggregated settings for the verification engine."""
    environment: str = "development"
    service_name: str = "easymed-auth"
    otp: OTPConfig = field(default_factory=OTPConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    quota: QuotaConfig = field(default_factory=QuotaConfig)
    tokens: TokenConfig = field(default_factory=TokenConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    bypass: BypassConfig = field(default_factory=BypassConfig)
    audit_buffer_size: int = 1000

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def expose_demo_code(self) -> bool:
        """Demo codes are returned to clients only outside production."""
        return not self.is_production

    @classmethod
    def from_env(cls) -> "EasyMedSettings":
        """Build settings from environment variables."""
        return cls(
            environment=os.getenv("EASYMED_ENV", "development"),
            service_name=os.getenv("SERVICE_NAME", "easymed-auth"),
            otp=OTPConfig(
                length=_env_int("OTP_LENGTH", 6),
                ttl_seconds=_env_int("OTP_TTL_SECONDS", 600),
                max_attempts=_env_int("OTP_MAX_ATTEMPTS", 3),
                resend_cooldown_seconds=_env_int("OTP_RESEND_COOLDOWN_SECONDS", 60),
                country_code=os.getenv("OTP_COUNTRY_CODE", "91"),
            ),
            rate_limit=RateLimitConfig(
                address_requests=_env_int("RATE_LIMIT_ADDRESS_REQUESTS", 5),
                address_request_window=_env_int("RATE_LIMIT_ADDRESS_REQUEST_WINDOW", 900),
                address_verifies=_env_int("RATE_LIMIT_ADDRESS_VERIFIES", 30),
                address_verify_window=_env_int("RATE_LIMIT_ADDRESS_VERIFY_WINDOW", 900),
                identifier_sends=_env_int("RATE_LIMIT_IDENTIFIER_SENDS", 5),
                identifier_send_window=_env_int("RATE_LIMIT_IDENTIFIER_SEND_WINDOW", 3600),
                identifier_verifies=_env_int("RATE_LIMIT_IDENTIFIER_VERIFIES", 10),
                identifier_verify_window=_env_int("RATE_LIMIT_IDENTIFIER_VERIFY_WINDOW", 900),
            ),
            quota=QuotaConfig(
                identifier_hourly=_env_int("QUOTA_IDENTIFIER_HOURLY", 5),
                identifier_daily=_env_int("QUOTA_IDENTIFIER_DAILY", 10),
                identifier_monthly=_env_int("QUOTA_IDENTIFIER_MONTHLY", 100),
                global_hourly=_env_int("QUOTA_GLOBAL_HOURLY", 50),
                global_daily=_env_int("QUOTA_GLOBAL_DAILY", 100),
                global_monthly=_env_int("QUOTA_GLOBAL_MONTHLY", 1000),
                alert_threshold=_env_float("QUOTA_ALERT_THRESHOLD", 0.8),
            ),
            tokens=TokenConfig(
                secret=os.getenv("JWT_SECRET", ""),
                algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
                access_ttl_seconds=_env_int("JWT_ACCESS_TTL_SECONDS", 900),
                refresh_ttl_seconds=_env_int("JWT_REFRESH_TTL_SECONDS", 7 * 24 * 3600),
            ),
            delivery=DeliveryConfig(
                timeout_seconds=_env_float("DELIVERY_TIMEOUT_SECONDS", 10.0),
                twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID"),
                twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN"),
                twilio_phone_number=os.getenv("TWILIO_PHONE_NUMBER"),
                twilio_messaging_service_sid=os.getenv("TWILIO_MESSAGING_SERVICE_SID"),
                federated_base_url=os.getenv("FEDERATED_PHONE_BASE_URL"),
                federated_api_key=os.getenv("FEDERATED_PHONE_API_KEY"),
                federated_project_id=os.getenv("FEDERATED_PHONE_PROJECT_ID"),
                email_relay_url=os.getenv("EMAIL_RELAY_URL"),
                email_relay_api_key=os.getenv("EMAIL_RELAY_API_KEY"),
                email_sender=os.getenv("EMAIL_SENDER", "noreply@easymedpro.com"),
            ),
            bypass=BypassConfig(
                identifiers=_env_list("OTP_BYPASS_IDENTIFIERS"),
                emergency_ttl_seconds=_env_int("OTP_EMERGENCY_BYPASS_TTL_SECONDS", 24 * 3600),
            ),
            audit_buffer_size=_env_int("AUDIT_BUFFER_SIZE", 1000),
        )
