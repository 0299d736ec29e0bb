"""
Token hashing helpers.

OTP codes and blacklisted access tokens are stored as SHA-256 digests so the
plaintext is never persisted.
"""

from __future__ import annotations

import hashlib


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    Args:
        token: The plaintext token string to hash.

    Returns:
        64-character lowercase hex string.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()
