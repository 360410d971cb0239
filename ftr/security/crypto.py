"""
Security module: pre-shared passkey generation and verification.

Transferred bytes are not encrypted; the passkey only gates who may upload.
"""

import logging
import secrets

from cryptography.hazmat.primitives.constant_time import bytes_eq

from ftr.config import PASSKEY_ALPHABET, PASSKEY_LENGTH

logger = logging.getLogger(__name__)


def generate_pass_key(length: int = PASSKEY_LENGTH) -> str:
    """
    Generate a random passkey for `join` when none is supplied.

    Each character is drawn independently from PASSKEY_ALPHABET with a
    CSPRNG.
    """
    if length <= 0:
        raise ValueError("passkey length must be positive")
    return "".join(secrets.choice(PASSKEY_ALPHABET) for _ in range(length))


def pass_keys_match(expected: str, supplied: str | None) -> bool:
    """Compare a supplied passkey against the configured one in constant time."""
    if not expected or supplied is None:
        return False
    return bytes_eq(expected.encode("utf-8"), supplied.encode("utf-8"))
