"""
Challenge Delivery
==================
Provider fallback, circuit breaking and message rendering.
"""

from .breaker import CircuitState, BreakerConfig, ProviderBreaker
from .messages import render_sms, render_email, supported_languages
from .orchestrator import (
    ProviderKind,
    ProviderSlot,
    DeliveryAttempt,
    DeliveryOutcome,
    DeliveryOrchestrator,
)

__all__ = [
    # Breaker
    "CircuitState",
    "BreakerConfig",
    "ProviderBreaker",
    # Messages
    "render_sms",
    "render_email",
    "supported_languages",
    # Orchestrator
    "ProviderKind",
    "ProviderSlot",
    "DeliveryAttempt",
    "DeliveryOutcome",
    "DeliveryOrchestrator",
]
