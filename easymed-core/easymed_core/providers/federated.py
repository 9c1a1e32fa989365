"""
Federated Phone Identity Adapter
================================
Secondary SMS route through a hosted phone-verification service.
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from ..identity import mask_identifier
from .base import BaseDeliveryAdapter, Channel, DeliveryResult, DeliveryStatus

logger = structlog.get_logger(__name__)


class FederatedPhoneIdentityAdapter(BaseDeliveryAdapter):
    """
    Hosted phone identity provider.

    The provider sends the message itself and returns a verification
    reference; the code is still checked locally.
    """

    name = "federated_phone"
    channels = frozenset({Channel.SMS})

    def __init__(
        self,
        config: Dict[str, Any],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: {
                "base_url": "https://identity.example.com",
                "api_key": "xxx",
                "project_id": "easymedpro",
            }
        """
        super().__init__(config, transport)
        self.base_url = (self.config.get("base_url") or "").rstrip("/")
        self.api_key = self.config.get("api_key")
        self.project_id = self.config.get("project_id")

    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    async def initialize(self) -> None:
        """Create HTTP client."""
        self._client = self._build_client(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        await super().initialize()

    async def send(
        self,
        identifier: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> DeliveryResult:
        """Request delivery through the identity service."""
        client = self._require_client()

        payload = {
            "phoneNumber": identifier,
            "message": message,
            "projectId": self.project_id,
        }

        try:
            response = await client.post("/v1/phone/verifications", json=payload)
        except httpx.HTTPError as e:
            logger.error(
                "Federated identity send failed",
                identifier=mask_identifier(identifier),
                error=str(e),
            )
            return DeliveryResult(
                accepted=False,
                status=DeliveryStatus.FAILED,
                error_message=str(e),
            )

        if response.status_code in (200, 201, 202):
            data = self._accepted_body(response)
            if data is None:
                return self._invalid_response(response)
            return DeliveryResult(
                accepted=True,
                provider_ref=data.get("verificationId") or data.get("id"),
                status=DeliveryStatus.SENT,
                raw_response=data,
            )

        error_data = self._error_body(response)
        logger.warning(
            "Federated identity rejected message",
            identifier=mask_identifier(identifier),
            status_code=response.status_code,
        )
        return DeliveryResult(
            accepted=False,
            status=DeliveryStatus.REJECTED,
            error_code=str(error_data.get("code", response.status_code)),
            error_message=error_data.get("message", "Unknown error"),
            raw_response=error_data,
        )
