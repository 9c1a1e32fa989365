"""
Tests for settings and the error taxonomy.
"""


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        from easymed_core.config import EasyMedSettings

        for name in ("EASYMED_ENV", "OTP_TTL_SECONDS", "JWT_SECRET", "OTP_BYPASS_IDENTIFIERS"):
            monkeypatch.delenv(name, raising=False)

        settings = EasyMedSettings.from_env()

        assert settings.environment == "development"
        assert settings.otp.ttl_seconds == 600
        assert settings.otp.max_attempts == 3
        assert settings.otp.resend_cooldown_seconds == 60
        assert settings.tokens.access_ttl_seconds == 900
        assert settings.bypass.identifiers == []
        assert settings.expose_demo_code

    def test_from_env(self, monkeypatch):
        from easymed_core.config import EasyMedSettings

        monkeypatch.setenv("EASYMED_ENV", "production")
        monkeypatch.setenv("OTP_TTL_SECONDS", "300")
        monkeypatch.setenv("QUOTA_GLOBAL_DAILY", "500")
        monkeypatch.setenv("OTP_BYPASS_IDENTIFIERS", "9876543220, 9876543230 ,")
        monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC123")
        monkeypatch.setenv("TWILIO_AUTH_TOKEN", "token")
        monkeypatch.setenv("TWILIO_MESSAGING_SERVICE_SID", "MG123")

        settings = EasyMedSettings.from_env()

        assert settings.is_production
        assert not settings.expose_demo_code
        assert settings.otp.ttl_seconds == 300
        assert settings.quota.global_daily == 500
        assert settings.bypass.identifiers == ["9876543220", "9876543230"]
        assert settings.delivery.twilio_configured
        assert not settings.delivery.federated_configured


class TestErrors:
    """Tests for user-facing error payloads."""

    def test_status_codes(self):
        from easymed_core.errors import (
            AttemptsExhausted,
            ChallengeExpired,
            CooldownActive,
            InvalidIdentifier,
            TokenInvalid,
        )

        assert InvalidIdentifier().http_status == 400
        assert CooldownActive(retry_after=10).http_status == 429
        assert ChallengeExpired().http_status == 410
        assert AttemptsExhausted().http_status == 429
        assert TokenInvalid().http_status == 401

    def test_to_dict_includes_hints(self):
        from easymed_core.errors import InvalidCode, RateLimited

        assert RateLimited(retry_after=30).to_dict() == {
            "error": "rate_limited",
            "message": "Too many requests. Please try again later.",
            "retry_after": 30,
        }
        assert InvalidCode(remaining_attempts=1).to_dict()["remaining_attempts"] == 1

    def test_internal_message_not_exposed(self):
        from easymed_core.errors import ChallengeNotFound

        err = ChallengeNotFound("challenge:+919876543210 missing from store")

        assert "store" not in err.to_dict()["message"]
        assert "challenge:" in str(err)
