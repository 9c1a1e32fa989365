"""
Delivery Orchestrator
=====================
Routes an OTP message through an explicit provider priority list.

PRIMARY is preferred. A provider is skipped when its configuration check
fails, its breaker is open, or (for PRIMARY) the global quota is spent. A
failed or timed-out send falls through to the next provider. Each provider
is tried at most once, with LOCAL_DEMO as the last resort.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog

from ..errors import ProviderNotConfigured
from ..identity import mask_identifier
from ..metrics import record_delivery
from ..providers import BaseDeliveryAdapter, Channel
from .breaker import BreakerConfig, ProviderBreaker

logger = structlog.get_logger(__name__)


class ProviderKind(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    LOCAL_DEMO = "local_demo"


PRIORITY: Tuple[ProviderKind, ...] = (
    ProviderKind.PRIMARY,
    ProviderKind.SECONDARY,
    ProviderKind.LOCAL_DEMO,
)


@dataclass
class ProviderSlot:
    kind: ProviderKind
    adapter: BaseDeliveryAdapter
    breaker: ProviderBreaker


@dataclass
class DeliveryAttempt:
    """One provider considered during a delivery."""
    provider: str
    kind: ProviderKind
    outcome: str  # accepted, rejected, timeout, error or skipped
    reason: Optional[str] = None
    duration_ms: float = 0.0


@dataclass
class DeliveryOutcome:
    """Final result of routing one message."""
    accepted: bool
    degraded: bool
    provider: Optional[str] = None
    kind: Optional[ProviderKind] = None
    provider_ref: Optional[str] = None
    demo_code: Optional[str] = None
    attempts: List[DeliveryAttempt] = field(default_factory=list)


class DeliveryOrchestrator:
    """
    Health-aware provider fallback.

    Example:
        orchestrator = DeliveryOrchestrator([
            (ProviderKind.PRIMARY, TwilioAdapter(config)),
            (ProviderKind.LOCAL_DEMO, LocalDemoAdapter()),
        ])
        await orchestrator.initialize()
        outcome = await orchestrator.deliver("+919876543210", text, Channel.SMS)
    """

    def __init__(
        self,
        providers: Sequence[Tuple[ProviderKind, BaseDeliveryAdapter]],
        timeout_seconds: float = 10.0,
        breaker_config: Optional[BreakerConfig] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self._slots: List[ProviderSlot] = [
            ProviderSlot(kind=kind, adapter=adapter, breaker=ProviderBreaker(adapter.name, breaker_config))
            for kind, adapter in providers
        ]
        self._slots.sort(key=lambda slot: PRIORITY.index(slot.kind))

    @property
    def slots(self) -> List[ProviderSlot]:
        return list(self._slots)

    def breaker(self, provider: str) -> Optional[ProviderBreaker]:
        for slot in self._slots:
            if slot.adapter.name == provider:
                return slot.breaker
        return None

    async def initialize(self) -> None:
        for slot in self._slots:
            if slot.adapter.is_configured():
                await slot.adapter.initialize()

    async def close(self) -> None:
        for slot in self._slots:
            await slot.adapter.close()

    def _candidates(self, channel: Channel) -> List[ProviderSlot]:
        return [slot for slot in self._slots if slot.adapter.supports(channel)]

    def has_real_provider(self, channel: Channel) -> bool:
        return any(
            slot.kind != ProviderKind.LOCAL_DEMO and slot.adapter.is_configured()
            for slot in self._candidates(channel)
        )

    def _skip(self, attempts: List[DeliveryAttempt], slot: ProviderSlot, reason: str) -> None:
        attempts.append(DeliveryAttempt(slot.adapter.name, slot.kind, "skipped", reason))
        record_delivery(slot.adapter.name, "skipped", 0.0)
        logger.info("Provider skipped", provider=slot.adapter.name, reason=reason)

    async def deliver(
        self,
        identifier: str,
        message: str,
        channel: Channel = Channel.SMS,
        metadata: Optional[Dict[str, Any]] = None,
        primary_exhausted: bool = False,
    ) -> DeliveryOutcome:
        """
        Deliver a message through the first provider that accepts it.

        Args:
            identifier: Normalized recipient
            message: Rendered message body
            channel: SMS or email
            metadata: Adapter context. ``code`` is passed only to LOCAL_DEMO.
            primary_exhausted: Skip PRIMARY because its budget is spent

        Returns:
            DeliveryOutcome; ``degraded`` is set when a real provider was
            configured but none accepted
        """
        metadata = dict(metadata or {})
        provider_metadata = {k: v for k, v in metadata.items() if k != "code"}
        real_configured = self.has_real_provider(channel)
        attempts: List[DeliveryAttempt] = []
        masked = mask_identifier(identifier)

        for slot in self._candidates(channel):
            adapter = slot.adapter
            if slot.kind == ProviderKind.PRIMARY and primary_exhausted:
                self._skip(attempts, slot, "quota_exhausted")
                continue
            if not adapter.is_configured():
                self._skip(attempts, slot, "not_configured")
                continue
            if not await slot.breaker.allow():
                self._skip(attempts, slot, "circuit_open")
                continue

            send_metadata = metadata if slot.kind == ProviderKind.LOCAL_DEMO else provider_metadata
            started = time.perf_counter()
            try:
                result = await asyncio.wait_for(
                    adapter.send(identifier, message, send_metadata),
                    timeout=self.timeout_seconds,
                )
            except asyncio.TimeoutError:
                duration = time.perf_counter() - started
                await slot.breaker.record_failure("timeout")
                record_delivery(adapter.name, "timeout", duration)
                attempts.append(DeliveryAttempt(adapter.name, slot.kind, "timeout", "timeout", duration * 1000))
                logger.warning("Provider send timed out", provider=adapter.name, identifier=masked)
                continue
            except ProviderNotConfigured as e:
                duration = time.perf_counter() - started
                await slot.breaker.record_failure("not_initialized")
                record_delivery(adapter.name, "error", duration)
                attempts.append(DeliveryAttempt(adapter.name, slot.kind, "error", str(e), duration * 1000))
                logger.error("Provider not initialized", provider=adapter.name)
                continue
            except Exception as e:
                duration = time.perf_counter() - started
                await slot.breaker.record_failure("error")
                record_delivery(adapter.name, "error", duration)
                attempts.append(DeliveryAttempt(adapter.name, slot.kind, "error", str(e), duration * 1000))
                logger.error("Provider send failed", provider=adapter.name, identifier=masked, error=str(e))
                continue

            duration = time.perf_counter() - started
            if not result.accepted:
                reason = result.error_code or result.error_message or "rejected"
                await slot.breaker.record_failure(reason)
                record_delivery(adapter.name, "rejected", duration)
                attempts.append(DeliveryAttempt(adapter.name, slot.kind, "rejected", reason, duration * 1000))
                logger.warning(
                    "Provider rejected message",
                    provider=adapter.name,
                    identifier=masked,
                    error_code=result.error_code,
                )
                continue

            await slot.breaker.record_success()
            record_delivery(adapter.name, "accepted", duration)
            attempts.append(DeliveryAttempt(adapter.name, slot.kind, "accepted", None, duration * 1000))
            degraded = real_configured and slot.kind == ProviderKind.LOCAL_DEMO
            logger.info(
                "OTP delivered",
                provider=adapter.name,
                kind=slot.kind.value,
                identifier=masked,
                degraded=degraded,
            )
            return DeliveryOutcome(
                accepted=True,
                degraded=degraded,
                provider=adapter.name,
                kind=slot.kind,
                provider_ref=result.provider_ref,
                demo_code=result.demo_code,
                attempts=attempts,
            )

        logger.error("No provider accepted message", identifier=masked, channel=Channel(channel).value)
        return DeliveryOutcome(accepted=False, degraded=real_configured, attempts=attempts)

    async def health(self) -> Dict[str, Dict[str, Any]]:
        """Per-provider configuration, health and breaker state."""
        report: Dict[str, Dict[str, Any]] = {}
        for slot in self._slots:
            report[slot.adapter.name] = {
                "kind": slot.kind.value,
                "channels": sorted(c.value for c in slot.adapter.channels),
                "configured": slot.adapter.is_configured(),
                "healthy": await slot.adapter.health_check(),
                "circuit": slot.breaker.metrics,
            }
        return report
