"""Random secret material for generated settings.

Values are produced by drawing cryptographically random bytes and keeping
only those that are ASCII letters or digits until the requested length is
reached. Existing sites carry salts and config-directory suffixes made this
way, so the alphabet and the fixed lengths are part of the contract.
"""
from __future__ import annotations

import secrets
import string

ALPHABET = frozenset((string.ascii_letters + string.digits).encode("ascii"))
HASH_SALT_LENGTH = 64
CONFIG_SUFFIX_LENGTH = 16


def random_alphanumeric(length: int) -> str:
    """Return *length* random characters from ``[A-Za-z0-9]``."""
    if length <= 0:
        raise ValueError("length must be positive")
    collected = bytearray()
    while len(collected) < length:
        chunk = secrets.token_bytes(length * 4)
        collected.extend(byte for byte in chunk if byte in ALPHABET)
    return collected[:length].decode("ascii")


def generate_hash_salt() -> str:
    return random_alphanumeric(HASH_SALT_LENGTH)


def generate_config_suffix() -> str:
    return random_alphanumeric(CONFIG_SUFFIX_LENGTH)


__all__ = [
    "CONFIG_SUFFIX_LENGTH",
    "HASH_SALT_LENGTH",
    "generate_config_suffix",
    "generate_hash_salt",
    "random_alphanumeric",
]
