"""
Tests for the HTTP surface.
"""

import pytest
from fastapi.testclient import TestClient

from easymed_core.config import EasyMedSettings, RateLimitConfig, TokenConfig

SECRET = "test-secret-key-that-is-at-least-32-bytes"


@pytest.fixture
def service(clock):
    from easymed_core.service import create_verification_service

    settings = EasyMedSettings(environment="development", tokens=TokenConfig(secret=SECRET))
    return create_verification_service(settings, clock=clock)


@pytest.fixture
def client(service):
    from easymed_core.api import create_app

    with TestClient(create_app(service)) as test_client:
        yield test_client


class TestAuthEndpoints:
    """Tests for challenge and token endpoints."""

    def test_request_verify_refresh_logout(self, client):
        response = client.post("/auth/otp/request", json={"identifier": "9876543210"})
        assert response.status_code == 200
        body = response.json()
        assert body["identifier"] == "+91********10"
        assert body["degraded"] is False

        response = client.post(
            "/auth/otp/verify",
            json={"identifier": "9876543210", "code": body["demo_code"]},
        )
        assert response.status_code == 200
        verified = response.json()
        assert verified["subject_id"] == "patient_1"
        tokens = verified["tokens"]
        assert tokens["token_type"] == "Bearer"

        response = client.post("/auth/token/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 200
        assert response.json()["expires_in"] == 900

        response = client.post("/auth/logout", json={"refresh_token": tokens["refresh_token"]})
        assert response.json() == {"revoked": 1}

        response = client.post("/auth/token/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 401
        assert response.json()["error"] == "token_revoked"

    def test_invalid_identifier(self, client):
        response = client.post("/auth/otp/request", json={"identifier": "12345"})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_identifier"

    def test_cooldown_sets_retry_after(self, client):
        client.post("/auth/otp/request", json={"identifier": "9876543210"})

        response = client.post("/auth/otp/request", json={"identifier": "9876543210"})

        assert response.status_code == 429
        assert response.json()["error"] == "cooldown_active"
        assert response.headers["Retry-After"] == "60"

    def test_wrong_code_reports_remaining_attempts(self, client):
        body = client.post("/auth/otp/request", json={"identifier": "9876543210"}).json()
        wrong = "000000" if body["demo_code"] != "000000" else "111111"

        response = client.post("/auth/otp/verify", json={"identifier": "9876543210", "code": wrong})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_code"
        assert response.json()["remaining_attempts"] == 2

    def test_error_body_hides_internals(self, client):
        response = client.post("/auth/otp/verify", json={"identifier": "9876543210", "code": "123456"})

        assert response.status_code == 404
        assert set(response.json()) == {"error", "message"}

    def test_rate_limit_uses_forwarded_address(self, clock):
        from easymed_core.api import create_app
        from easymed_core.service import create_verification_service

        settings = EasyMedSettings(
            tokens=TokenConfig(secret=SECRET),
            rate_limit=RateLimitConfig(address_requests=1),
        )
        service = create_verification_service(settings, clock=clock)

        with TestClient(create_app(service)) as client:
            headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
            first = client.post("/auth/otp/request", json={"identifier": "9876543210"}, headers=headers)
            second = client.post("/auth/otp/request", json={"identifier": "9876543211"}, headers=headers)
            other = client.post(
                "/auth/otp/request",
                json={"identifier": "9876543212"},
                headers={"X-Forwarded-For": "203.0.113.8"},
            )

        assert first.status_code == 200
        assert second.status_code == 429
        assert int(second.headers["Retry-After"]) > 0
        assert other.status_code == 200


class TestOperationalEndpoints:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["components"]["provider:local_demo"]["status"] == "connected"
        assert body["components"]["provider:twilio"]["status"] == "not_configured"
        assert body["components"]["quota"]["status"] == "ok"

    def test_liveness_and_readiness(self, client):
        assert client.get("/health/live").json() == {"status": "alive"}
        assert client.get("/health/ready").status_code == 200

    def test_metrics(self, client):
        client.post("/auth/otp/request", json={"identifier": "9876543210"})

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "otp_challenge_events_total" in response.text
        assert "otp_delivery_attempts_total" in response.text

    def test_request_id_header(self, client):
        response = client.get("/health/live", headers={"X-Request-ID": "abc123"})

        assert response.headers["x-request-id"] == "abc123"
