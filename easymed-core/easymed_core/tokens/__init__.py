"""
Session Tokens
==============
"""

from .models import TokenPair, RefreshTokenRecord
from .issuer import TokenIssuer, hash_refresh_token

__all__ = [
    "TokenPair",
    "RefreshTokenRecord",
    "TokenIssuer",
    "hash_refresh_token",
]
