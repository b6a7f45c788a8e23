# file: scamshield/core/parser.py
"""
Phone number normalization for the block list.

Blocked numbers are stored as integers (digits only, country code included,
no `+`). Normalization is intentionally lenient: every non-digit character is
dropped, so "+94 77-123 4567" and "94771234567" map to the same entry.
Display helpers use `phonenumbers` for readable output.
"""

from __future__ import annotations

import re

import phonenumbers
from phonenumbers import NumberParseException
from phonenumbers.phonenumberutil import PhoneNumberFormat

from scamshield.errors import InvalidNumberError

INT64_MAX = 2**63 - 1

_NON_DIGIT = re.compile(r"[^0-9]+")


def sanitize_digits(raw: str) -> str:
    """Strip everything except ASCII digits."""

    return _NON_DIGIT.sub("", raw.strip())


def normalize_number(raw: str | int) -> int:
    """
    Normalize user input into an integer-encoded phone number.

    Raises:
        InvalidNumberError: if no digits remain, or the value does not fit in a
            signed 64-bit integer.
    """

    if isinstance(raw, bool):
        raise InvalidNumberError("Phone number must be digits, not a boolean.")
    if isinstance(raw, int):
        if raw < 0 or raw > INT64_MAX:
            raise InvalidNumberError(f"Phone number out of range: {raw}")
        return raw

    digits = sanitize_digits(raw)
    if not digits:
        raise InvalidNumberError(f"Not a phone number: {raw!r}")

    value = int(digits)
    if value > INT64_MAX:
        raise InvalidNumberError(f"Phone number too long: {raw!r}")
    return value


def display_number(number: int) -> str:
    """
    Format a stored number for humans, e.g. 94771234567 -> "+94 77 123 4567".

    Falls back to "+<digits>" when libphonenumber cannot make sense of it.
    """

    e164_like = f"+{number}"
    try:
        parsed = phonenumbers.parse(e164_like, None)
    except NumberParseException:
        return e164_like
    if not phonenumbers.is_possible_number(parsed):
        return e164_like
    return phonenumbers.format_number(parsed, PhoneNumberFormat.INTERNATIONAL)
