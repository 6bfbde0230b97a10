"""URL-safe, unpadded base64 text stage.

Tokens only ever contain ``A-Z a-z 0-9 - _`` so they can be written into a
cookie value verbatim.  Decoding is strict: padding, the standard ``+`` and
``/`` characters, whitespace, and any other byte outside the alphabet are
rejected instead of being skipped.
"""

from __future__ import annotations

import base64
import binascii
import re

from .errors import EncodingError

_ALPHABET = re.compile(r"[A-Za-z0-9_-]*")


def encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _check_alphabet(text: str) -> None:
    if not isinstance(text, str):
        raise EncodingError(f"Token must be text, not {type(text).__name__}")
    if _ALPHABET.fullmatch(text) is None:
        raise EncodingError("Token contains characters outside the URL-safe base64 alphabet")


def decoded_length(text: str) -> int:
    """Return the number of whole bytes *text* encodes, after checking its alphabet."""

    _check_alphabet(text)
    return len(text) * 3 // 4


def decode(text: str) -> bytes:
    """Decode unpadded URL-safe base64, raising :class:`EncodingError` on bad input."""

    _check_alphabet(text)
    if len(text) % 4 == 1:
        raise EncodingError("Token length leaves a dangling base64 character")
    padded = text + "=" * (-len(text) % 4)
    try:
        return base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError) as exc:  # pragma: no cover - alphabet checked above
        raise EncodingError("Failed to decode token") from exc
