"""
Email Relay Adapter
===================
Delivers OTP emails through an HTTP mail relay.
"""

from typing import Any, Dict, Optional

import httpx
import structlog

from ..identity import mask_identifier
from .base import BaseDeliveryAdapter, Channel, DeliveryResult, DeliveryStatus

logger = structlog.get_logger(__name__)


class EmailRelayAdapter(BaseDeliveryAdapter):
    """JSON-over-HTTPS mail relay authenticated with a bearer key."""

    name = "email_relay"
    channels = frozenset({Channel.EMAIL})

    def __init__(
        self,
        config: Dict[str, Any],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: {
                "url": "https://mail.example.com/v1/send",
                "api_key": "xxx",
                "sender": "noreply@easymedpro.com",
            }
        """
        super().__init__(config, transport)
        self.url = self.config.get("url")
        self.api_key = self.config.get("api_key")
        self.sender = self.config.get("sender")

    def is_configured(self) -> bool:
        return bool(self.url and self.api_key and self.sender)

    async def initialize(self) -> None:
        self._client = self._build_client(headers={"Authorization": f"Bearer {self.api_key}"})
        await super().initialize()

    async def send(
        self,
        identifier: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> DeliveryResult:
        client = self._require_client()
        metadata = metadata or {}

        payload = {
            "from": self.sender,
            "to": identifier,
            "subject": metadata.get("subject", "Your verification code"),
            "text": message,
        }

        try:
            response = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            logger.error("Email relay send failed", identifier=mask_identifier(identifier), error=str(e))
            return DeliveryResult(
                accepted=False,
                status=DeliveryStatus.FAILED,
                error_message=str(e),
            )

        if response.status_code in (200, 201, 202):
            data = self._error_body(response)
            return DeliveryResult(
                accepted=True,
                provider_ref=data.get("id") or data.get("messageId"),
                status=DeliveryStatus.SENT,
                raw_response=data,
            )

        error_data = self._error_body(response)
        logger.warning(
            "Email relay rejected message",
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
