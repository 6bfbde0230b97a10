"""Seal and unseal orchestrators.

``seal`` runs serialize -> compress -> encrypt -> encode and ``unseal`` runs
the exact mirror.  Every stage raises its own error class and stops the
pipeline; nothing is retried.  Unsealing authenticates before it
decompresses, and checks the expiry only once the value has been fully
rebuilt.
"""

from __future__ import annotations

import logging
import math
import time
from datetime import datetime
from typing import Any

from . import aead, encoding
from .compression import ZstdCodec, default_codec
from .envelope import NO_EXPIRY, Envelope, deserialize, serialize
from .errors import ExpiredError, MalformedTokenError, SealedCookieError, SerializationError

logger = logging.getLogger(__name__)


def _now() -> float:
    return time.time()


def _expiry_seconds(expires: datetime | None) -> int | None:
    if expires is None:
        return None
    seconds = math.floor(expires.timestamp())
    if seconds == NO_EXPIRY:
        raise SerializationError("Expiry instant collides with the no-expiry marker")
    return seconds


def seal(
    secret: bytes,
    value: Any,
    expires: datetime | None = None,
    *,
    codec: ZstdCodec | None = None,
) -> str:
    """Seal *value* into an opaque URL-safe token.

    *expires* is the absolute instant after which :func:`unseal` rejects the
    token; ``None`` means it never expires.  A naive *expires* is read as local
    time, as :meth:`datetime.timestamp` reads it.  A fresh random nonce is drawn
    on every call, so sealing the same value twice gives different tokens.
    """

    if codec is None:
        codec = default_codec()
    packed = serialize(Envelope(value=value, expires=_expiry_seconds(expires)))
    compressed = codec.compress(packed)
    cipher = aead.new_cipher(secret)
    nonce = aead.generate_nonce()
    token = encoding.encode(nonce + cipher.seal(nonce, compressed))
    logger.debug(
        "Sealed value",
        extra={"packed_size": len(packed), "token_length": len(token)},
    )
    return token


def unseal(
    secret: bytes,
    token: str,
    value_type: Any = Any,
    *,
    codec: ZstdCodec | None = None,
) -> Any:
    """Verify *token* and return the value it carries as *value_type*.

    Raises :class:`~sealed_cookie.errors.ExpiredError` when the envelope is
    authentic but past its expiry; the decoded value is available on the
    exception's ``value`` attribute.
    """

    if codec is None:
        codec = default_codec()
    try:
        if encoding.decoded_length(token) < aead.NONCE_SIZE:
            raise MalformedTokenError(f"Token is shorter than the {aead.NONCE_SIZE}-byte nonce")
        message = encoding.decode(token)
        nonce, ciphertext = message[: aead.NONCE_SIZE], message[aead.NONCE_SIZE :]
        cipher = aead.new_cipher(secret)
        compressed = cipher.open(nonce, ciphertext)
        envelope = deserialize(codec.decompress(compressed), value_type)
    except SealedCookieError as exc:
        logger.debug("Rejected token: %s", type(exc).__name__)
        raise

    if envelope.is_expired(_now()):
        logger.debug("Rejected expired token", extra={"expires": envelope.expires})
        raise ExpiredError(envelope.value, envelope.expires)
    return envelope.value
