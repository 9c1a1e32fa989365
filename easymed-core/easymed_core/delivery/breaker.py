"""
Provider Circuit Breaker
========================
Per-provider breaker that makes delivery fallback health-aware.

States:

1. CLOSED: Normal operation, sends flow through
2. OPEN: Provider is failing, it is skipped
3. HALF-OPEN: One trial send decides whether it recovered
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

import structlog

from ..metrics import record_circuit_state

logger = structlog.get_logger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class BreakerConfig:
    fail_threshold: int = 3
    success_threshold: int = 1
    timeout: float = 60.0  # seconds before an open breaker allows a trial
    half_open_max_calls: int = 1


@dataclass
class BreakerState:
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    success_count: int = 0
    half_open_calls: int = 0
    last_state_change: float = 0.0
    last_failure_time: Optional[float] = None
    last_failure_reason: Optional[str] = None
    total_failures: int = 0
    total_successes: int = 0
    total_rejections: int = 0


class ProviderBreaker:
    """
    Async-compatible circuit breaker for one delivery provider.

    Example:
        breaker = ProviderBreaker("twilio")
        if await breaker.allow():
            result = await adapter.send(...)
            if result.accepted:
                await breaker.record_success()
            else:
                await breaker.record_failure(result.error_code)
    """

    def __init__(
        self,
        name: str,
        config: Optional[BreakerConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.config = config or BreakerConfig()
        self._clock = clock
        self._state = BreakerState(last_state_change=clock())
        self._lock = asyncio.Lock()
        record_circuit_state(name, CircuitState.CLOSED.value)

    @property
    def state(self) -> CircuitState:
        """Current circuit state."""
        return self._state.state

    @property
    def metrics(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self._state.state.value,
            "failure_count": self._state.failure_count,
            "total_failures": self._state.total_failures,
            "total_successes": self._state.total_successes,
            "total_rejections": self._state.total_rejections,
            "last_failure": self._state.last_failure_time,
            "last_failure_reason": self._state.last_failure_reason,
        }

    def _transition(self, state: CircuitState) -> None:
        self._state.state = state
        self._state.last_state_change = self._clock()
        record_circuit_state(self.name, state.value)

    async def allow(self) -> bool:
        """Check and possibly transition state. Returns True if a send may proceed."""
        async with self._lock:
            if self._state.state == CircuitState.CLOSED:
                return True

            if self._state.state == CircuitState.OPEN:
                if self._clock() - self._state.last_state_change >= self.config.timeout:
                    self._transition(CircuitState.HALF_OPEN)
                    self._state.half_open_calls = 1
                    self._state.success_count = 0
                    logger.info("circuit_half_open", provider=self.name)
                    return True
                self._state.total_rejections += 1
                return False

            if self._state.half_open_calls < self.config.half_open_max_calls:
                self._state.half_open_calls += 1
                return True
            self._state.total_rejections += 1
            return False

    async def record_success(self) -> None:
        async with self._lock:
            self._state.total_successes += 1

            if self._state.state == CircuitState.HALF_OPEN:
                self._state.success_count += 1
                if self._state.success_count >= self.config.success_threshold:
                    self._transition(CircuitState.CLOSED)
                    self._state.failure_count = 0
                    logger.info("circuit_closed", provider=self.name)
            else:
                self._state.failure_count = 0

    async def record_failure(self, reason: Optional[str] = None) -> None:
        async with self._lock:
            self._state.total_failures += 1
            self._state.failure_count += 1
            self._state.last_failure_time = self._clock()
            self._state.last_failure_reason = reason

            if self._state.state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
                logger.warning("circuit_reopened", provider=self.name, reason=reason)
            elif (
                self._state.state == CircuitState.CLOSED
                and self._state.failure_count >= self.config.fail_threshold
            ):
                self._transition(CircuitState.OPEN)
                logger.warning(
                    "circuit_opened",
                    provider=self.name,
                    failures=self._state.failure_count,
                )

    def reset(self) -> None:
        self._state = BreakerState(last_state_change=self._clock())
        record_circuit_state(self.name, CircuitState.CLOSED.value)
