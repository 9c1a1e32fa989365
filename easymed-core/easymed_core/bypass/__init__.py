"""
Verification Bypass
===================
"""

from .models import BypassEntry
from .registry import BypassRegistry

__all__ = [
    "BypassEntry",
    "BypassRegistry",
]
