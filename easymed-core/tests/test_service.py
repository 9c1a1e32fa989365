"""
Tests for the verification service facade.
"""

import httpx
import pytest

from easymed_core.config import (
    BypassConfig,
    DeliveryConfig,
    EasyMedSettings,
    QuotaConfig,
    TokenConfig,
)

SECRET = "test-secret-key-that-is-at-least-32-bytes"


def make_service(clock, transport=None, **overrides):
    from easymed_core.service import create_verification_service

    overrides.setdefault("tokens", TokenConfig(secret=SECRET))
    settings = EasyMedSettings(environment=overrides.pop("environment", "development"), **overrides)
    return create_verification_service(settings, transport=transport, clock=clock)


def wrong_code(code: str) -> str:
    return "000000" if code != "000000" else "111111"


class TestRequestAndSubmit:
    """End-to-end challenge flows."""

    @pytest.mark.asyncio
    async def test_full_flow(self, clock):
        service = make_service(clock)
        await service.startup()

        challenge = await service.request_challenge("9876543210", client_address="10.0.0.1")

        assert challenge.accepted
        assert challenge.identifier == "+91********10"
        assert challenge.channel == "sms"
        assert challenge.cooldown_seconds == 60
        assert not challenge.degraded
        assert len(challenge.demo_code) == 6

        result = await service.submit_challenge("+91 98765 43210", challenge.demo_code)

        assert result.verified
        assert result.subject_id == "patient_1"
        claims = service.issuer.verify_access_token(result.tokens.access_token)
        assert claims["user_type"] == "patient"

        access = await service.refresh_access_token(result.tokens.refresh_token)
        assert service.issuer.verify_access_token(access)["sub"] == "patient_1"
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_wrong_codes_lock_challenge(self, clock):
        from easymed_core.errors import ChallengeNotFound, InvalidCode

        service = make_service(clock)
        challenge = await service.request_challenge("9876543210")
        bad = wrong_code(challenge.demo_code)

        remaining = []
        for _ in range(3):
            with pytest.raises(InvalidCode) as exc_info:
                await service.submit_challenge("9876543210", bad)
            remaining.append(exc_info.value.remaining_attempts)

        assert remaining == [2, 1, 0]
        with pytest.raises(ChallengeNotFound):
            await service.submit_challenge("9876543210", challenge.demo_code)

    @pytest.mark.asyncio
    async def test_submit_without_challenge(self, clock):
        from easymed_core.errors import ChallengeNotFound

        service = make_service(clock)

        with pytest.raises(ChallengeNotFound) as exc_info:
            await service.submit_challenge("9876543210", "123456")

        assert exc_info.value.http_status == 404

    @pytest.mark.asyncio
    async def test_expired_challenge(self, clock):
        from easymed_core.errors import ChallengeExpired

        service = make_service(clock)
        challenge = await service.request_challenge("9876543210")
        clock.advance(600)

        with pytest.raises(ChallengeExpired):
            await service.submit_challenge("9876543210", challenge.demo_code)

    @pytest.mark.asyncio
    async def test_invalid_identifier(self, clock):
        from easymed_core.errors import InvalidIdentifier

        service = make_service(clock)

        for raw in ("12345", "5876543210", "not-an-email@", ""):
            with pytest.raises(InvalidIdentifier):
                await service.request_challenge(raw)

    @pytest.mark.asyncio
    async def test_new_identifier_registers_subject(self, clock):
        service = make_service(clock)
        challenge = await service.request_challenge("9812345678")

        result = await service.submit_challenge("9812345678", challenge.demo_code)

        assert result.subject_id not in ("patient_1", "doctor_1", "asha_1")
        claims = service.issuer.verify_access_token(result.tokens.access_token)
        assert claims["identifier"] == "+919812345678"

    @pytest.mark.asyncio
    async def test_email_flow(self, clock):
        service = make_service(clock)
        await service.startup()

        challenge = await service.request_challenge(" ASHA@demo.com ")

        assert challenge.channel == "email"
        assert challenge.identifier == "as***@demo.com"

        result = await service.submit_challenge("asha@demo.com", challenge.demo_code)
        assert result.subject_id == "asha_1"


class TestRequestGuards:
    """Cooldown, rate limits and quota on challenge requests."""

    @pytest.mark.asyncio
    async def test_cooldown(self, clock):
        from easymed_core.errors import CooldownActive

        service = make_service(clock)
        await service.request_challenge("9876543210")
        clock.advance(15)

        with pytest.raises(CooldownActive) as exc_info:
            await service.request_challenge("9876543210")

        assert exc_info.value.retry_after == 45
        clock.advance(45)
        assert (await service.request_challenge("9876543210")).accepted

    @pytest.mark.asyncio
    async def test_identifier_quota_exceeded(self, clock):
        from easymed_core.audit import AuditEventKind
        from easymed_core.errors import QuotaExceeded

        service = make_service(clock, quota=QuotaConfig(identifier_hourly=1))
        await service.request_challenge("9876543210")
        clock.advance(61)

        with pytest.raises(QuotaExceeded) as exc_info:
            await service.request_challenge("9876543210")

        assert exc_info.value.retry_after == 3200 - 61
        assert len(service.audit.find("+919876543210", AuditEventKind.QUOTA_EXCEEDED)) == 1

    @pytest.mark.asyncio
    async def test_identifier_quota_enforced_while_global_spent(self, clock):
        """Should still deny the identifier once its own budget is spent."""
        from easymed_core.errors import QuotaExceeded

        service = make_service(clock, quota=QuotaConfig(global_hourly=0, identifier_daily=1))
        assert (await service.request_challenge("9876543210")).accepted
        clock.advance(61)

        with pytest.raises(QuotaExceeded):
            await service.request_challenge("9876543210")

    @pytest.mark.asyncio
    async def test_cooldown_charges_nothing(self, clock):
        """Should leave the send window and quota untouched on a cooldown refusal."""
        from easymed_core.errors import CooldownActive
        from easymed_core.rate_limit import RateLimitScope

        service = make_service(clock)
        await service.request_challenge("9876543210")

        with pytest.raises(CooldownActive):
            await service.request_challenge("9876543210")

        assert service.quota_report("9876543210")["usage"]["hour"]["used"] == 1
        info = service.rate_limits.peek(RateLimitScope.IDENTIFIER_SEND, "+919876543210")
        assert info.remaining == 4

    def test_concurrent_requests_open_one_challenge(self, clock):
        from concurrent.futures import ThreadPoolExecutor
        from easymed_core.errors import CooldownActive

        service = make_service(clock)

        def attempt(_):
            try:
                service.open_challenge("+919876543210")
                return "opened"
            except CooldownActive:
                return "cooldown"

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(attempt, range(8)))

        assert outcomes.count("opened") == 1
        assert outcomes.count("cooldown") == 7
        assert service.quota_report("9876543210")["usage"]["hour"]["used"] == 1

    @pytest.mark.asyncio
    async def test_address_rate_limit(self, clock):
        from easymed_core.audit import AuditEventKind
        from easymed_core.errors import RateLimited

        service = make_service(clock)
        for i in range(5):
            await service.request_challenge(f"981234567{i}", client_address="10.0.0.9")

        with pytest.raises(RateLimited) as exc_info:
            await service.request_challenge("9812345679", client_address="10.0.0.9")

        assert exc_info.value.retry_after > 0
        assert len(service.audit.find(kind=AuditEventKind.RATE_LIMITED)) == 1
        assert (await service.request_challenge("9812345679", client_address="10.0.0.10")).accepted

    @pytest.mark.asyncio
    async def test_global_quota_skips_primary_provider(self, clock):
        """Should route around the paid gateway and report degraded delivery."""
        from easymed_core.audit import AuditEventKind

        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(201, json={"sid": "SM1", "status": "queued"})

        service = make_service(
            clock,
            transport=httpx.MockTransport(handler),
            quota=QuotaConfig(global_hourly=0),
            delivery=DeliveryConfig(
                twilio_account_sid="AC123",
                twilio_auth_token="token",
                twilio_phone_number="+15550001111",
            ),
        )
        await service.startup()

        challenge = await service.request_challenge("9876543210")

        assert challenge.accepted
        assert challenge.degraded
        assert challenge.demo_code
        assert requests == []
        assert len(service.audit.find("+919876543210", AuditEventKind.DEGRADED)) == 1
        await service.shutdown()

    @pytest.mark.asyncio
    async def test_primary_provider_used_when_configured(self, clock):
        from easymed_core.audit import AuditEventKind

        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(201, json={"sid": "SM1", "status": "queued"})

        service = make_service(
            clock,
            transport=httpx.MockTransport(handler),
            delivery=DeliveryConfig(
                twilio_account_sid="AC123",
                twilio_auth_token="token",
                twilio_phone_number="+15550001111",
            ),
        )
        await service.startup()

        challenge = await service.request_challenge("9876543210")

        assert not challenge.degraded
        assert challenge.demo_code is None
        assert len(requests) == 1
        sent = service.audit.find("+919876543210", AuditEventKind.SENT)
        assert sent[0].metadata["provider"] == "twilio"
        await service.shutdown()


class TestProductionMode:

    @pytest.mark.asyncio
    async def test_demo_code_hidden(self, clock):
        service = make_service(clock, environment="production")

        challenge = await service.request_challenge("9876543210")

        assert challenge.accepted
        assert challenge.demo_code is None
        assert "demo_code" not in challenge.to_dict()

    def test_secret_required(self, clock):
        with pytest.raises(ValueError):
            make_service(clock, environment="production", tokens=TokenConfig())

    @pytest.mark.asyncio
    async def test_no_demo_users(self, clock):
        service = make_service(clock, environment="production",
                               bypass=BypassConfig(identifiers=["9876543210"]))

        result = await service.submit_challenge("9876543210", "")

        assert result.subject_id != "patient_1"


class TestBypass:
    """Allow-listed and emergency bypass flows."""

    @pytest.mark.asyncio
    async def test_allow_listed_identifier(self, clock):
        service = make_service(clock, bypass=BypassConfig(identifiers=["9876543220"]))

        challenge = await service.request_challenge("9876543220")

        assert challenge.bypassed
        assert challenge.demo_code is None
        assert challenge.cooldown_seconds == 0

        result = await service.submit_challenge("9876543220", "anything")
        assert result.bypassed
        assert result.subject_id == "asha_1"

    @pytest.mark.asyncio
    async def test_emergency_bypass_token(self, clock):
        from easymed_core.errors import ChallengeNotFound

        service = make_service(clock)
        entry = service.issue_emergency_bypass("9812345678", "SMS outage")

        result = await service.submit_challenge("9812345678", "", bypass_token=entry.token)
        assert result.bypassed

        clock.advance(24 * 3600)
        with pytest.raises(ChallengeNotFound):
            await service.submit_challenge("9812345678", "", bypass_token=entry.token)

    @pytest.mark.asyncio
    async def test_emergency_grant_requires_token_to_verify(self, clock):
        """Should run normal verification when the grant token is missing or wrong."""
        from easymed_core.errors import ChallengeNotFound

        service = make_service(clock)
        service.issue_emergency_bypass("9812345678", "SMS outage")

        with pytest.raises(ChallengeNotFound):
            await service.submit_challenge("9812345678", "")
        with pytest.raises(ChallengeNotFound):
            await service.submit_challenge("9812345678", "", bypass_token="forged")

    @pytest.mark.asyncio
    async def test_emergency_grant_checked_against_its_identifier(self, clock):
        from easymed_core.errors import ChallengeNotFound

        service = make_service(clock)
        entry = service.issue_emergency_bypass("9812345678", "SMS outage")

        with pytest.raises(ChallengeNotFound):
            await service.submit_challenge("9812345679", "", bypass_token=entry.token)


class TestSessions:
    """Refresh and logout."""

    @pytest.mark.asyncio
    async def test_logout_single_device(self, clock):
        from easymed_core.errors import TokenRevoked

        service = make_service(clock)
        challenge = await service.request_challenge("9876543210")
        result = await service.submit_challenge("9876543210", challenge.demo_code)

        assert await service.logout(result.tokens.refresh_token) == 1
        assert await service.logout(result.tokens.refresh_token) == 0
        with pytest.raises(TokenRevoked):
            await service.refresh_access_token(result.tokens.refresh_token)

    @pytest.mark.asyncio
    async def test_logout_all_devices(self, clock):
        service = make_service(clock)
        sessions = []
        for _ in range(2):
            challenge = await service.request_challenge("9876543210")
            sessions.append(await service.submit_challenge("9876543210", challenge.demo_code))
            clock.advance(60)

        assert await service.logout(sessions[0].tokens.refresh_token, all_devices=True) == 2
        assert await service.logout("unknown", all_devices=True) == 0


class TestReports:

    @pytest.mark.asyncio
    async def test_quota_report(self, clock):
        service = make_service(clock)
        await service.request_challenge("9876543210")

        assert service.quota_report("9876543210")["usage"]["hour"]["used"] == 1
        assert service.quota_report()["outcomes"]["succeeded"] == 1

    @pytest.mark.asyncio
    async def test_diagnostic_report(self, clock):
        service = make_service(clock)
        await service.startup()
        await service.request_challenge("9876543210")

        report = await service.diagnostic_report()

        assert report["environment"] == "development"
        assert report["integrity"]["valid"] is True
        assert report["providers"]["local_demo"]["healthy"] is True
        assert report["quota"]["usage"]["hour"]["used"] == 1
        assert report["kind_counts"]["SENT"] == 1
