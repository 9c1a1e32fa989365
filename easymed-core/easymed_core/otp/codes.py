"""
Challenge Codes
===============
Numeric codes and the identifier-bound digests stored in their place.

A digest is HMAC-SHA256 keyed by the challenge salt over
``identifier|code``. A digest lifted from one identifier's slot never
verifies for another identifier.
"""

import hashlib
import hmac
import secrets
import string

from ..config import OTPConfig

SALT_BYTES = 16


def new_code(config: OTPConfig) -> str:
    """Draw ``config.length`` digits from the system CSPRNG."""
    return "".join(secrets.choice(string.digits) for _ in range(config.length))


def new_salt() -> str:
    return secrets.token_hex(SALT_BYTES)


def code_digest(identifier: str, code: str, salt: str) -> str:
    message = f"{identifier}|{code}".encode("utf-8")
    return hmac.new(bytes.fromhex(salt), message, hashlib.sha256).hexdigest()


def code_matches(identifier: str, candidate: str, salt: str, expected: str) -> bool:
    """Constant-time check of a candidate against the stored digest."""
    return hmac.compare_digest(code_digest(identifier, candidate, salt), expected)
