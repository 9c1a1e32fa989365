"""
Rate Limit Policy
=================
The four limiters guarding challenge requests and verifications.
"""

import time
from typing import Callable, Dict, Optional

import structlog

from ..config import RateLimitConfig
from ..errors import RateLimited
from ..identity import mask_identifier
from ..storage import KeyValueStore
from .in_memory import FixedWindowLimiter
from .models import RateLimitInfo, RateLimitScope

logger = structlog.get_logger(__name__)


class RateLimitPolicy:
    """
    Bundles per-address and per-identifier limiters.

    Each ``check_*`` consumes one unit and raises ``RateLimited`` with
    ``retry_after`` when the window is exhausted.
    """

    def __init__(
        self,
        store: KeyValueStore,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        config = config or RateLimitConfig()
        self.config = config
        self.limiters: Dict[RateLimitScope, FixedWindowLimiter] = {
            RateLimitScope.ADDRESS_REQUEST: FixedWindowLimiter(
                store, "addr_req", config.address_requests, config.address_request_window, clock
            ),
            RateLimitScope.ADDRESS_VERIFY: FixedWindowLimiter(
                store, "addr_verify", config.address_verifies, config.address_verify_window, clock
            ),
            RateLimitScope.IDENTIFIER_SEND: FixedWindowLimiter(
                store, "id_send", config.identifier_sends, config.identifier_send_window, clock
            ),
            RateLimitScope.IDENTIFIER_VERIFY: FixedWindowLimiter(
                store, "id_verify", config.identifier_verifies, config.identifier_verify_window, clock
            ),
        }

    def _consume(self, scope: RateLimitScope, scope_key: str, log_key: str) -> RateLimitInfo:
        info = self.limiters[scope].consume(scope_key)
        if not info.allowed:
            logger.warning(
                "Rate limit exceeded",
                scope=scope.value,
                key=log_key,
                retry_after=info.retry_after,
            )
            raise RateLimited(retry_after=info.retry_after)
        return info

    def check_address_request(self, address: str) -> RateLimitInfo:
        return self._consume(RateLimitScope.ADDRESS_REQUEST, address, address)

    def check_address_verify(self, address: str) -> RateLimitInfo:
        return self._consume(RateLimitScope.ADDRESS_VERIFY, address, address)

    def check_identifier_send(self, identifier: str) -> RateLimitInfo:
        return self._consume(
            RateLimitScope.IDENTIFIER_SEND, identifier, mask_identifier(identifier)
        )

    def check_identifier_verify(self, identifier: str) -> RateLimitInfo:
        return self._consume(
            RateLimitScope.IDENTIFIER_VERIFY, identifier, mask_identifier(identifier)
        )

    def peek(self, scope: RateLimitScope, scope_key: str) -> RateLimitInfo:
        return self.limiters[scope].peek(scope_key)
