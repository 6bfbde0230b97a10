"""XChaCha20-Poly1305 authenticated encryption stage.

The extended 24-byte nonce is wide enough to be drawn at random for every
token, so no counter or nonce state is kept between calls.  Nonces travel in
the clear as the token prefix; only the key is secret.
"""

from __future__ import annotations

import logging
import os

from nacl import bindings
from nacl.exceptions import CryptoError

from .errors import AuthenticationError, InvalidKeyError, RandomSourceError

logger = logging.getLogger(__name__)

KEY_SIZE = bindings.crypto_aead_xchacha20poly1305_ietf_KEYBYTES
NONCE_SIZE = bindings.crypto_aead_xchacha20poly1305_ietf_NPUBBYTES
TAG_SIZE = bindings.crypto_aead_xchacha20poly1305_ietf_ABYTES


class XChaCha20Poly1305:
    """AEAD cipher bound to a single 32-byte key."""

    __slots__ = ("_key",)

    def __init__(self, key: bytes) -> None:
        if not isinstance(key, (bytes, bytearray, memoryview)):
            raise InvalidKeyError(f"Secret must be bytes, not {type(key).__name__}")
        key = bytes(key)
        if len(key) != KEY_SIZE:
            raise InvalidKeyError(f"Secret must be exactly {KEY_SIZE} bytes, got {len(key)}")
        self._key = key

    def __repr__(self) -> str:
        return "XChaCha20Poly1305(key=<redacted>)"

    def seal(self, nonce: bytes, plaintext: bytes, associated_data: bytes | None = None) -> bytes:
        """Return ``ciphertext || tag`` for *plaintext*."""

        return bindings.crypto_aead_xchacha20poly1305_ietf_encrypt(
            plaintext, associated_data, nonce, self._key
        )

    def open(self, nonce: bytes, ciphertext: bytes, associated_data: bytes | None = None) -> bytes:
        """Verify and decrypt ``ciphertext || tag``.

        Raises :class:`AuthenticationError` when the tag does not verify, which
        covers tampering, a wrong key, and a nonce that does not belong to the
        ciphertext.  Nothing is returned on failure.
        """

        if len(ciphertext) < TAG_SIZE:
            raise AuthenticationError("Failed to authenticate token: ciphertext shorter than tag")
        try:
            return bindings.crypto_aead_xchacha20poly1305_ietf_decrypt(
                ciphertext, associated_data, nonce, self._key
            )
        except CryptoError as exc:
            raise AuthenticationError("Failed to authenticate token") from exc


def new_cipher(key: bytes) -> XChaCha20Poly1305:
    """Create the cipher for *key*, rejecting keys of the wrong length."""

    return XChaCha20Poly1305(key)


def generate_nonce() -> bytes:
    """Draw a fresh nonce from the operating system CSPRNG."""

    try:
        return os.urandom(NONCE_SIZE)
    except (OSError, NotImplementedError) as exc:
        logger.error("Secure random source unavailable")
        raise RandomSourceError("Failed to read nonce from the secure random source") from exc
