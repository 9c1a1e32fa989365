"""
Twilio SMS Adapter
==================
Primary SMS gateway for OTP delivery.
"""

from base64 import b64encode
from typing import Any, Dict, Optional

import httpx
import structlog

from ..identity import mask_identifier
from .base import BaseDeliveryAdapter, Channel, DeliveryResult, DeliveryStatus

logger = structlog.get_logger(__name__)


class TwilioAdapter(BaseDeliveryAdapter):
    """Twilio Programmable SMS adapter."""

    name = "twilio"
    channels = frozenset({Channel.SMS})

    def __init__(
        self,
        config: Dict[str, Any],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: {
                "account_sid": "ACxxx",
                "auth_token": "xxx",
                "from_number": "+1555...",       # or
                "messaging_service_sid": "MGxxx",
            }
        """
        super().__init__(config, transport)
        self.account_sid = self.config.get("account_sid")
        self.auth_token = self.config.get("auth_token")
        self.from_number = self.config.get("from_number")
        self.messaging_service_sid = self.config.get("messaging_service_sid")
        self.base_url = f"https://api.twilio.com/2010-04-01/Accounts/{self.account_sid}"

    def is_configured(self) -> bool:
        return bool(
            self.account_sid
            and self.auth_token
            and (self.from_number or self.messaging_service_sid)
        )

    async def initialize(self) -> None:
        """Create HTTP client with auth."""
        auth = b64encode(f"{self.account_sid}:{self.auth_token}".encode()).decode()
        self._client = self._build_client(headers={"Authorization": f"Basic {auth}"})
        await super().initialize()

    async def send(
        self,
        identifier: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> DeliveryResult:
        """Send SMS via Twilio."""
        client = self._require_client()

        payload = {
            "To": identifier,
            "Body": message,
        }
        if self.messaging_service_sid:
            payload["MessagingServiceSid"] = self.messaging_service_sid
        else:
            payload["From"] = self.from_number

        try:
            response = await client.post(f"{self.base_url}/Messages.json", data=payload)
        except httpx.HTTPError as e:
            logger.error("Twilio send failed", identifier=mask_identifier(identifier), error=str(e))
            return DeliveryResult(
                accepted=False,
                status=DeliveryStatus.FAILED,
                error_message=str(e),
            )

        if response.status_code == 201:
            data = self._accepted_body(response)
            if data is None:
                return self._invalid_response(response)
            return DeliveryResult(
                accepted=True,
                provider_ref=data.get("sid"),
                status=self._map_status(data.get("status", "")),
                raw_response=data,
            )

        error_data = self._error_body(response)
        logger.warning(
            "Twilio rejected message",
            identifier=mask_identifier(identifier),
            status_code=response.status_code,
            error_code=error_data.get("code"),
        )
        return DeliveryResult(
            accepted=False,
            status=DeliveryStatus.REJECTED,
            error_code=str(error_data.get("code", response.status_code)),
            error_message=error_data.get("message", "Unknown error"),
            raw_response=error_data,
        )

    def _map_status(self, twilio_status: str) -> DeliveryStatus:
        """Map Twilio status to internal status."""
        mapping = {
            "queued": DeliveryStatus.PENDING,
            "accepted": DeliveryStatus.PENDING,
            "sending": DeliveryStatus.PENDING,
            "sent": DeliveryStatus.SENT,
            "delivered": DeliveryStatus.DELIVERED,
            "undelivered": DeliveryStatus.FAILED,
            "failed": DeliveryStatus.FAILED,
        }
        return mapping.get(twilio_status.lower(), DeliveryStatus.PENDING)

    async def health_check(self) -> bool:
        """Check Twilio API availability."""
        if not self._client or not self.is_configured():
            return False

        try:
            response = await self._client.get(f"{self.base_url}.json")
            return response.status_code == 200
        except httpx.HTTPError:
            return False
