"""
Phone identity validators - framework-agnostic, pure functions.

Used by the request DTOs so malformed identities are rejected at the HTTP
boundary, before reaching the OTP services.
"""

from __future__ import annotations

import re

_COUNTRY_CODE_RE = re.compile(r"^\+[0-9]{1,4}$")
_PHONE_NUMBER_RE = re.compile(r"^[0-9]{6,15}$")
_OTP_RE = re.compile(r"^[0-9]{6}$")


def normalize_country_code(value: str) -> str:
    """Strip whitespace and add the leading ``+`` when missing.

    Raises:
        ValueError: If the result is not ``+`` followed by 1-4 digits.
    """
    code = value.strip().replace(" ", "")
    if code and not code.startswith("+"):
        code = f"+{code}"
    if not _COUNTRY_CODE_RE.match(code):
        raise ValueError("Country code must look like +91")
    return code


def normalize_phone_number(value: str) -> str:
    """Remove spaces, dashes and parentheses; require 6-15 digits.

    Raises:
        ValueError: If the cleaned value is not 6-15 digits.
    """
    number = re.sub(r"[\s\-()]", "", value)
    if not _PHONE_NUMBER_RE.match(number):
        raise ValueError("Phone number must contain 6-15 digits")
    return number


def validate_otp_format(value: str) -> str:
    """Require exactly six digits.

    Raises:
        ValueError: If *value* is not a 6-digit string.
    """
    code = value.strip()
    if not _OTP_RE.match(code):
        raise ValueError("OTP must be a 6-digit code")
    return code
