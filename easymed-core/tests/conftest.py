"""
Shared fixtures for easymed-core tests.
"""

import pytest

from easymed_core.audit import AuditLog
from easymed_core.storage import InMemoryStore

# 2025-06-15T15:06:40Z
START_TIME = 1_750_000_000.0


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = START_TIME):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryStore(clock=clock)


@pytest.fixture
def audit(clock):
    return AuditLog(clock=clock)
