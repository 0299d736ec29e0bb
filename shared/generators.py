"""
Random code and name generators - pure functions apart from the clock.

OTP codes and token ids use the ``secrets`` module.
"""

from __future__ import annotations

import secrets
import time
import uuid

OTP_MIN = 100000
OTP_MAX = 999999


def generate_otp_code() -> str:
    """Generate a uniformly random 6-digit OTP in 100000-999999 inclusive."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def generate_token_id() -> str:
    """Return a random hex id used as the ``jti`` claim of a JWT."""
    return uuid.uuid4().hex


def generate_display_name(prefix: str, phone_number: str) -> str:
    """Build a placeholder display name for an account created by OTP.

    Combines the last 4 digits of the phone number with the last 4 digits of
    the current millisecond timestamp, e.g. ``user_3210_5821``.
    """
    stamp = str(int(time.time() * 1000))[-4:]
    return f"{prefix}_{phone_number[-4:]}_{stamp}"
