"""
Delivery Adapter Base
=====================
Base classes for OTP delivery provider integrations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

import httpx
import structlog

from ..errors import ProviderNotConfigured

logger = structlog.get_logger(__name__)


class Channel(str, Enum):
    SMS = "sms"
    EMAIL = "email"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    REJECTED = "rejected"


@dataclass
class DeliveryResult:
    """Result of a single provider send."""
    accepted: bool
    provider_ref: Optional[str] = None
    status: DeliveryStatus = DeliveryStatus.PENDING
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None
    demo_code: Optional[str] = None


class BaseDeliveryAdapter(ABC):
    """
    Abstract base class for delivery adapters.

    Adapters never raise for remote failures: they log and return a
    ``DeliveryResult`` with ``accepted=False``. Using an adapter before
    ``initialize()`` raises ``ProviderNotConfigured``.
    """

    name: str = "base"
    channels: FrozenSet[Channel] = frozenset({Channel.SMS})

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: Provider-specific config (API keys, account IDs, etc.)
            transport: Optional httpx transport, used to stub the network
        """
        self.config = dict(config or {})
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._is_initialized = False

    def is_configured(self) -> bool:
        """Pre-flight check that required credentials are present."""
        return True

    def supports(self, channel: Channel) -> bool:
        return Channel(channel) in self.channels

    def _build_client(self, **kwargs: Any) -> httpx.AsyncClient:
        kwargs.setdefault("timeout", 30.0)
        if self.transport is not None:
            kwargs["transport"] = self.transport
        return httpx.AsyncClient(**kwargs)

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise ProviderNotConfigured(self.name)
        return self._client

    async def initialize(self) -> None:
        """Initialize the adapter (e.g., create HTTP clients)."""
        self._is_initialized = True
        logger.info("Delivery adapter initialized", provider=self.name)

    async def close(self) -> None:
        """Clean up resources (e.g., close HTTP clients)."""
        if self._client:
            await self._client.aclose()
            self._client = None
        self._is_initialized = False
        logger.info("Delivery adapter closed", provider=self.name)

    @abstractmethod
    async def send(
        self,
        identifier: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> DeliveryResult:
        """
        Deliver a rendered OTP message.

        Args:
            identifier: Normalized phone number or email
            message: Rendered message body
            metadata: Extra context (subject, language, code for demo delivery)

        Returns:
            DeliveryResult with provider response
        """

    @staticmethod
    def _error_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {"message": response.text}
        return data if isinstance(data, dict) else {"message": str(data)}

    def _accepted_body(self, response: httpx.Response) -> Optional[Dict[str, Any]]:
        """JSON object of a success response, or None when the body is unusable."""
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            logger.warning(
                "Provider returned an unreadable success body",
                provider=self.name,
                status_code=response.status_code,
            )
            return None
        return data

    @staticmethod
    def _invalid_response(response: httpx.Response) -> DeliveryResult:
        return DeliveryResult(
            accepted=False,
            status=DeliveryStatus.FAILED,
            error_code="invalid_response",
            error_message=f"Unreadable body with HTTP {response.status_code}",
        )

    async def health_check(self) -> bool:
        """
        Check if the provider is usable.

        Returns:
            True if the adapter is configured and initialized
        """
        return self.is_configured() and self._is_initialized
