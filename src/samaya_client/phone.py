"""Phone number normalization and masking."""

from __future__ import annotations

import re

from .errors import ValidationError

COUNTRY_PREFIX = "+91"
PHONE_LENGTH = 10
INVALID_PHONE_MESSAGE = "Phone number must be exactly 10 digits"

_LEADING_ZEROS = re.compile(r"^0+")
_DIGITS = re.compile(r"^\d{10}$")


def normalize_phone(phone: str) -> str:
    """
    Normalize a user-entered phone number to the 10 digits the backend expects.

    Strips surrounding whitespace, a leading ``+91`` country prefix and any
    leading zeros. Raises ``ValidationError`` unless exactly 10 digits remain.

    Example:
        >>> normalize_phone("+919876543210")
        '9876543210'
        >>> normalize_phone("09876543210")
        '9876543210'
    """
    formatted = (phone or "").strip()
    if formatted.startswith(COUNTRY_PREFIX):
        formatted = formatted[len(COUNTRY_PREFIX):]
    formatted = _LEADING_ZEROS.sub("", formatted)

    if len(formatted) != PHONE_LENGTH or not _DIGITS.match(formatted):
        raise ValidationError(
            INVALID_PHONE_MESSAGE,
            code="invalid_phone",
            details={"length": len(formatted)},
        )
    return formatted


def mask_phone(phone: str) -> str:
    """Mask a phone number for logs, keeping the first 2 and last 4 digits."""
    if not phone:
        return "unknown"
    clean = re.sub(r"\D", "", phone)
    if len(clean) < 8:
        return "invalid"
    return f"{clean[:2]}****{clean[-4:]}"
