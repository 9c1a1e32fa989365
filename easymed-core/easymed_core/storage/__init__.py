"""
Key-Value Storage
=================
Injected store abstraction backing challenges, rate windows, quota counters
and refresh token records.
"""

from .memory import KeyValueStore, InMemoryStore

__all__ = [
    "KeyValueStore",
    "InMemoryStore",
]
