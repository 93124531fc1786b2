"""
Authenticated, optionally encrypted cookie values.

Token layout (before the outer base64url):

    timestamp | payload | mac

``payload`` is the base64url form of the JSON-serialised value, encrypted
with AES-CTR under a fresh IV when a block key is configured. ``mac`` is
HMAC-SHA256 over ``name | timestamp | payload``, so a token minted for one
cookie name does not verify under another.
"""

import base64
import binascii
import hashlib
import hmac
import json
import secrets
import time
from typing import Any, Callable, Optional

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from sqlsess.core.exceptions import (
    CookieAuthenticationError,
    CookieEncodeError,
    CookieExpiredError,
    CookieFormatError,
)
from sqlsess.core.security import validate_block_key, validate_hash_key

IV_SIZE = 16
DEFAULT_MAX_AGE = 86400 * 30
# Browsers commonly cap a single cookie at 4096 bytes
DEFAULT_MAX_LENGTH = 4096


def _b64encode(data: bytes) -> bytes:
    # Padding is stripped so the token is a legal unquoted cookie value
    return base64.urlsafe_b64encode(data).rstrip(b"=")


def _b64decode(data: bytes) -> bytes:
    padded = data + b"=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded)


class SecureCookie:
    """Encodes and decodes cookie values with HMAC authentication and AES encryption."""

    def __init__(
        self,
        hash_key: bytes,
        block_key: Optional[bytes] = None,
        max_age: int = DEFAULT_MAX_AGE,
        max_length: int = DEFAULT_MAX_LENGTH,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the codec.

        Args:
            hash_key: HMAC-SHA256 key, required
            block_key: Optional AES key of 16, 24 or 32 bytes; enables encryption
            max_age: Maximum token age in seconds, 0 disables the check
            max_length: Maximum encoded token length, 0 disables the check
            clock: Source of the current unix time

        Raises:
            ConfigurationError: If either key is invalid
        """
        validate_hash_key(hash_key)
        validate_block_key(block_key)
        self._hash_key = bytes(hash_key)
        self._block_key = bytes(block_key) if block_key is not None else None
        self.max_age = max_age
        self.max_length = max_length
        self._clock = clock

    @property
    def encrypts(self) -> bool:
        return self._block_key is not None

    def encode(self, name: str, value: Any) -> str:
        """
        Encode a value into a cookie token.

        Args:
            name: Cookie name, bound into the signature
            value: Any JSON-serialisable value

        Returns:
            URL-safe token suitable as a cookie value

        Raises:
            CookieEncodeError: If the value cannot be serialised or the token is too long
        """
        try:
            payload = json.dumps(value, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise CookieEncodeError(f"Cookie value could not be serialised: {e}") from e

        if self._block_key is not None:
            payload = self._encrypt(payload)
        payload = _b64encode(payload)

        timestamp = str(int(self._clock())).encode("ascii")
        mac = self._mac(name, timestamp, payload)
        token = _b64encode(b"|".join([timestamp, payload, mac])).decode("ascii")

        if self.max_length and len(token) > self.max_length:
            raise CookieEncodeError(
                f"Encoded cookie is {len(token)} bytes, limit is {self.max_length}"
            )
        return token

    def decode(self, name: str, token: str) -> Any:
        """
        Decode a cookie token back into its value.

        Args:
            name: Cookie name the token was issued for
            token: The cookie value

        Returns:
            The original value

        Raises:
            CookieFormatError: If the token is malformed
            CookieAuthenticationError: If the signature does not verify
            CookieExpiredError: If the token is older than max_age
        """
        if self.max_length and len(token) > self.max_length:
            raise CookieFormatError("Cookie value is too long")

        try:
            raw = _b64decode(token.encode("ascii"))
        except (binascii.Error, UnicodeEncodeError, ValueError) as e:
            raise CookieFormatError("Cookie value is not valid base64") from e

        parts = raw.split(b"|", 2)
        if len(parts) != 3:
            raise CookieFormatError("Cookie value has an invalid layout")
        timestamp, payload, mac = parts

        if not hmac.compare_digest(mac, self._mac(name, timestamp, payload)):
            raise CookieAuthenticationError("Cookie signature is not valid")

        try:
            issued = int(timestamp)
        except ValueError as e:
            raise CookieFormatError("Cookie timestamp is not valid") from e

        if self.max_age and issued < int(self._clock()) - self.max_age:
            raise CookieExpiredError("Cookie has expired")

        try:
            data = _b64decode(payload)
        except (binascii.Error, ValueError) as e:
            raise CookieFormatError("Cookie payload is not valid base64") from e

        if self._block_key is not None:
            data = self._decrypt(data)

        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise CookieFormatError("Cookie payload could not be deserialised") from e

    def _mac(self, name: str, timestamp: bytes, payload: bytes) -> bytes:
        message = b"|".join([name.encode("utf-8"), timestamp, payload])
        return hmac.new(self._hash_key, message, hashlib.sha256).digest()

    def _encrypt(self, data: bytes) -> bytes:
        iv = secrets.token_bytes(IV_SIZE)
        encryptor = Cipher(algorithms.AES(self._block_key), modes.CTR(iv)).encryptor()
        return iv + encryptor.update(data) + encryptor.finalize()

    def _decrypt(self, data: bytes) -> bytes:
        if len(data) <= IV_SIZE:
            raise CookieFormatError("Cookie payload is too short to decrypt")
        iv, ciphertext = data[:IV_SIZE], data[IV_SIZE:]
        decryptor = Cipher(algorithms.AES(self._block_key), modes.CTR(iv)).decryptor()
        return decryptor.update(ciphertext) + decryptor.finalize()
