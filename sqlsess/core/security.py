"""
Key handling for the identity cookie.

Generates cryptographically secure keys and validates keys supplied by the
host before they reach the cookie codec.
"""

import base64
import logging
import secrets
from typing import Optional

from sqlsess.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# AES-128, AES-192 and AES-256
VALID_BLOCK_KEY_LENGTHS = (16, 24, 32)

DEFAULT_HASH_KEY_LENGTH = 64
DEFAULT_BLOCK_KEY_LENGTH = 32


def generate_random_key(length: int) -> bytes:
    """
    Generate a cryptographically secure random key.

    Args:
        length: Number of random bytes

    Returns:
        ``length`` bytes drawn from the operating system CSPRNG
    """
    if length <= 0:
        raise ValueError("key length must be positive")
    return secrets.token_bytes(length)


def encode_key(key: bytes) -> str:
    """Render a key as unpadded base64url text, the format Settings expects."""
    return base64.urlsafe_b64encode(key).rstrip(b"=").decode("ascii")


def validate_hash_key(hash_key: Optional[bytes]) -> None:
    """
    Validate the HMAC key.

    Raises:
        ConfigurationError: If the key is missing or empty
    """
    if not hash_key:
        raise ConfigurationError("hash key is required and cannot be empty")

    if len(hash_key) < 32:
        # Still usable; HMAC-SHA256 accepts any key length
        logger.warning("Hash key is shorter than the recommended 32 bytes")


def validate_block_key(block_key: Optional[bytes]) -> None:
    """
    Validate the encryption key.

    A block key is optional; when given it must be a valid AES key length.

    Raises:
        ConfigurationError: If the key length is not 16, 24 or 32 bytes
    """
    if block_key is None:
        return

    if len(block_key) not in VALID_BLOCK_KEY_LENGTHS:
        raise ConfigurationError(
            f"invalid block key length {len(block_key)}: "
            "must be 16, 24 or 32 bytes (AES-128, AES-192 or AES-256)"
        )
