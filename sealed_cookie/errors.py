"""Error taxonomy for sealing and unsealing tokens.

Each stage of the pipelines raises its own subclass so callers can tell a
value that does not serialize apart from a bad key, a tampered token, or an
expired one.  Messages name the failing stage and never include the secret,
the plaintext, or the ciphertext.
"""

from __future__ import annotations

from typing import Any


class SealedCookieError(ValueError):
    """Base class for every error raised by :mod:`sealed_cookie`."""


class SerializationError(SealedCookieError):
    """Raised when a value holds a shape the envelope codec cannot represent."""


class DeserializationError(SealedCookieError):
    """Raised when decoded bytes do not match the envelope or requested type."""


class InvalidKeyError(SealedCookieError):
    """Raised when the secret is not a valid XChaCha20-Poly1305 key."""


class RandomSourceError(SealedCookieError):
    """Raised when the operating system random source fails."""


class EncodingError(SealedCookieError):
    """Raised when a token contains characters outside the URL-safe alphabet."""


class MalformedTokenError(SealedCookieError):
    """Raised when a token is too short to hold a nonce."""


class AuthenticationError(SealedCookieError):
    """Raised when the authentication tag does not verify."""


class DecompressionError(SealedCookieError):
    """Raised when authenticated bytes are not a valid compressed frame."""


class ExpiredError(SealedCookieError):
    """Raised when an authentic envelope is past its expiry instant.

    The decoded value is kept on :attr:`value` so a caller may still look at
    it; it is never handed back as a successful result.
    """

    def __init__(self, value: Any = None, expires: int | None = None) -> None:
        super().__init__("Sealed value expired")
        self.value = value
        self.expires = expires


class CookieError(SealedCookieError):
    """Raised when cookie attributes are invalid for a sealed cookie."""


class CookieNotFoundError(SealedCookieError):
    """Raised when a request carries no cookie with the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Cookie not present: {name}")
        self.name = name
