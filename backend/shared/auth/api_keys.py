"""API key generation, syntax validation, and lookup hashing.

Raw keys are bearer secrets handed to game clients. Only their SHA-256 hex
digest is persisted; the same digest names the game's cache artifact.
"""

import hashlib
import re
import secrets

from shared.errors import InvalidKeyFormat

RAW_KEY_MIN_LENGTH = 16
RAW_KEY_MAX_LENGTH = 64
RAW_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

# 32 random bytes, hex encoded -> 64 characters.
_RAW_KEY_BYTES = 32

_LOOKUP_HASH_PATTERN = re.compile(r"^[0-9a-f]{64}$")


def validate_syntax(raw_key: str) -> bool:
    """Return True when raw_key is a plausible API key.

    Cheap check performed before any storage access.
    """
    if not isinstance(raw_key, str):
        return False
    if len(raw_key) < RAW_KEY_MIN_LENGTH or len(raw_key) > RAW_KEY_MAX_LENGTH:
        return False
    return RAW_KEY_PATTERN.fullmatch(raw_key) is not None


def derive_lookup_hash(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def require_valid(raw_key: str | None) -> str:
    """Validate raw_key and return its lookup hash, or raise InvalidKeyFormat."""
    if raw_key is None or not validate_syntax(raw_key):
        raise InvalidKeyFormat
    return derive_lookup_hash(raw_key)


def generate_raw_key() -> str:
    return secrets.token_hex(_RAW_KEY_BYTES)


def is_lookup_hash(value: str) -> bool:
    """Return True when value has the exact shape of a derived lookup hash."""
    return _LOOKUP_HASH_PATTERN.fullmatch(value) is not None
