"""
Identifier Normalization
========================
Canonical verification keys for phone numbers and email addresses.
"""

from .models import IdentifierKind
from .normalizer import (
    normalize_identifier,
    normalize_phone,
    normalize_email,
    identifier_kind,
    mask_identifier,
)

__all__ = [
    "IdentifierKind",
    "normalize_identifier",
    "normalize_phone",
    "normalize_email",
    "identifier_kind",
    "mask_identifier",
]
