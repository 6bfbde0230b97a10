"""Encrypted, compressed, expiring cookie values."""

from .aead import KEY_SIZE, NONCE_SIZE
from .compression import ZstdCodec
from .cookies import CookieOptions, delete_cookie, get_cookie, set_cookie
from .envelope import Envelope
from .errors import (
    AuthenticationError,
    CookieError,
    CookieNotFoundError,
    DecompressionError,
    DeserializationError,
    EncodingError,
    ExpiredError,
    InvalidKeyError,
    MalformedTokenError,
    RandomSourceError,
    SealedCookieError,
    SerializationError,
)
from .sealing import seal, unseal

__all__ = [
    "KEY_SIZE",
    "NONCE_SIZE",
    "Envelope",
    "ZstdCodec",
    "seal",
    "unseal",
    "CookieOptions",
    "set_cookie",
    "get_cookie",
    "delete_cookie",
    "SealedCookieError",
    "SerializationError",
    "DeserializationError",
    "InvalidKeyError",
    "RandomSourceError",
    "EncodingError",
    "MalformedTokenError",
    "AuthenticationError",
    "DecompressionError",
    "ExpiredError",
    "CookieError",
    "CookieNotFoundError",
]
