"""
Identifier Models
=================
"""

from enum import Enum


class IdentifierKind(str, Enum):
    """Kind of verification subject."""
    PHONE = "phone"
    EMAIL = "email"
