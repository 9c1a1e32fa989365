"""
Tests for health reporting and logging setup.
"""

import pytest


class TestHealthChecks:
    """Tests for component health helpers."""

    @pytest.mark.asyncio
    async def test_provider_statuses(self):
        from easymed_core.delivery import DeliveryOrchestrator, ProviderKind
        from easymed_core.health import check_providers
        from easymed_core.providers import LocalDemoAdapter, TwilioAdapter

        orchestrator = DeliveryOrchestrator([
            (ProviderKind.PRIMARY, TwilioAdapter({})),
            (ProviderKind.LOCAL_DEMO, LocalDemoAdapter()),
        ])

        components = await check_providers(orchestrator)

        assert components["provider:twilio"].status == "not_configured"
        assert components["provider:local_demo"].status == "connected"

    def test_quota_status(self, store, clock):
        from easymed_core.config import QuotaConfig
        from easymed_core.health import check_quota
        from easymed_core.quota import QuotaMonitor

        assert check_quota(QuotaMonitor(store, QuotaConfig(), clock=clock)).status == "ok"
        assert check_quota(QuotaMonitor(store, QuotaConfig(global_daily=0), clock=clock)).status == "exhausted"

    def test_readiness_fails_without_providers(self):
        from fastapi import FastAPI
        from fastapi.testclient import TestClient
        from easymed_core.delivery import DeliveryOrchestrator, ProviderKind
        from easymed_core.health import create_health_router
        from easymed_core.providers import TwilioAdapter

        orchestrator = DeliveryOrchestrator([(ProviderKind.PRIMARY, TwilioAdapter({}))])
        app = FastAPI()
        app.include_router(create_health_router("easymed-auth", orchestrator=orchestrator))

        response = TestClient(app).get("/health/ready")

        assert response.status_code == 503
        assert response.json()["reason"] == "no_delivery_provider"


class TestLoggingSetup:

    def test_setup_logging_sets_service_context(self):
        import structlog
        from easymed_core.logging_config import service_name_var, setup_logging

        setup_logging("easymed-auth", level="DEBUG", json_output=False)

        assert service_name_var.get() == "easymed-auth"
        structlog.reset_defaults()
