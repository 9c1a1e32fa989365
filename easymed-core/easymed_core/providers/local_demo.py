"""
Local Demo Adapter
==================
Last-resort delivery that never touches the network.
"""

from typing import Any, Dict, Optional

import structlog

from ..identity import mask_identifier
from .base import BaseDeliveryAdapter, Channel, DeliveryResult, DeliveryStatus

logger = structlog.get_logger(__name__)


class LocalDemoAdapter(BaseDeliveryAdapter):
    """
    Hands the generated code back to the caller for console display.

    The code arrives in ``metadata["code"]``. It is written to the log only
    when ``log_codes`` is enabled, which should never be the case in
    production.
    """

    name = "local_demo"
    channels = frozenset({Channel.SMS, Channel.EMAIL})

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        self.log_codes = bool(self.config.get("log_codes", False))

    async def send(
        self,
        identifier: str,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> DeliveryResult:
        code = (metadata or {}).get("code")
        if self.log_codes:
            logger.warning("Demo OTP generated", identifier=mask_identifier(identifier), code=code)
        else:
            logger.info("Demo OTP generated", identifier=mask_identifier(identifier))
        return DeliveryResult(
            accepted=True,
            provider_ref="local-demo",
            status=DeliveryStatus.DELIVERED,
            demo_code=code,
        )

    async def health_check(self) -> bool:
        return True
