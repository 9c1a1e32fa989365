"""
Identifier Normalizer
=====================
Pure functions that turn raw phone numbers and emails into verification keys.

Every stateful component uses the normalized identifier as its cache key, so
these functions never touch the clock or any I/O, and normalizing an already
normalized identifier returns it unchanged.
"""

import re

from ..errors import InvalidIdentifier
from .models import IdentifierKind

DEFAULT_COUNTRY_CODE = "91"

_SEPARATORS = re.compile(r"[\s\-\.\(\)]")
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_NATIONAL = r"([6-9]\d{9})"


def normalize_phone(raw: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Normalize a mobile number to ``+<country code><subscriber>``.

    Accepted forms (separators ignored):
    - bare 10-digit number starting 6-9
    - trunk-prefixed: ``0`` + number
    - country-coded: ``91`` + number, with or without ``+``
    - country code plus trunk: ``910`` + number, with or without ``+``
    - international prefix: ``0091`` + number

    Raises:
        InvalidIdentifier: if the digits match none of the accepted forms
    """
    if not isinstance(raw, str):
        raise InvalidIdentifier()

    value = raw.strip()
    has_plus = value.startswith("+")
    if has_plus:
        value = value[1:]

    digits = _SEPARATORS.sub("", value)
    if not digits.isdigit():
        raise InvalidIdentifier()

    cc = re.escape(country_code)
    if has_plus:
        pattern = rf"^{cc}0?{_NATIONAL}$"
    else:
        pattern = rf"^(?:00{cc}|{cc}0?|0)?{_NATIONAL}$"

    match = re.match(pattern, digits)
    if not match:
        raise InvalidIdentifier()

    return f"+{country_code}{match.group(1)}"


def normalize_email(raw: str) -> str:
    """Trim and lower-case an email address after a shape check."""
    if not isinstance(raw, str):
        raise InvalidIdentifier()

    value = raw.strip().lower()
    if not _EMAIL_PATTERN.match(value):
        raise InvalidIdentifier()
    return value


def normalize_identifier(raw: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Canonicalize a phone number or email into a single verification key.

    Args:
        raw: User-supplied phone number or email
        country_code: Calling code applied to national numbers

    Returns:
        ``+<cc><subscriber>`` for phones, lower-cased address for emails

    Raises:
        InvalidIdentifier: if the input is malformed
    """
    if isinstance(raw, str) and "@" in raw:
        return normalize_email(raw)
    return normalize_phone(raw, country_code)


def identifier_kind(identifier: str) -> IdentifierKind:
    """Kind of an already normalized identifier."""
    return IdentifierKind.EMAIL if "@" in identifier else IdentifierKind.PHONE


def mask_identifier(identifier: str) -> str:
    """
    Mask an identifier for logs and client responses.

    ``+919876543210`` -> ``+91********10``; ``asha@example.com`` -> ``as***@example.com``
    """
    if not identifier:
        return "****"

    if "@" in identifier:
        local, _, domain = identifier.partition("@")
        return f"{local[:2]}***@{domain}"

    if len(identifier) < 6:
        return "****"
    return identifier[:3] + "*" * (len(identifier) - 5) + identifier[-2:]
