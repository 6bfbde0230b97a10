from __future__ import annotations

import pytest

from sealed_cookie import aead
from sealed_cookie.aead import KEY_SIZE, NONCE_SIZE, TAG_SIZE, generate_nonce, new_cipher
from sealed_cookie.errors import AuthenticationError, InvalidKeyError, RandomSourceError

KEY = bytes(range(KEY_SIZE))


def test_sizes_match_extended_nonce_variant() -> None:
    assert (KEY_SIZE, NONCE_SIZE, TAG_SIZE) == (32, 24, 16)


def test_seal_appends_tag_and_open_recovers_plaintext() -> None:
    cipher = new_cipher(KEY)
    nonce = generate_nonce()

    sealed = cipher.seal(nonce, b"payload")

    assert len(sealed) == len(b"payload") + TAG_SIZE
    assert cipher.open(nonce, sealed) == b"payload"


def test_associated_data_is_bound() -> None:
    cipher = new_cipher(KEY)
    nonce = generate_nonce()
    sealed = cipher.seal(nonce, b"payload", b"cookie-name")

    assert cipher.open(nonce, sealed, b"cookie-name") == b"payload"
    with pytest.raises(AuthenticationError):
        cipher.open(nonce, sealed)


def test_open_rejects_wrong_nonce() -> None:
    cipher = new_cipher(KEY)
    sealed = cipher.seal(b"\x00" * NONCE_SIZE, b"payload")

    with pytest.raises(AuthenticationError):
        cipher.open(b"\x01" * NONCE_SIZE, sealed)


def test_open_rejects_ciphertext_shorter_than_tag() -> None:
    with pytest.raises(AuthenticationError):
        new_cipher(KEY).open(b"\x00" * NONCE_SIZE, b"\x00" * (TAG_SIZE - 1))


@pytest.mark.parametrize("key", [b"", b"\x00" * (KEY_SIZE - 1), b"\x00" * (KEY_SIZE + 1), "x" * KEY_SIZE, None])
def test_new_cipher_rejects_invalid_keys(key) -> None:
    with pytest.raises(InvalidKeyError):
        new_cipher(key)


def test_repr_hides_key() -> None:
    assert KEY.hex() not in repr(new_cipher(KEY))
    assert "redacted" in repr(new_cipher(KEY))


def test_generate_nonce_length_and_freshness() -> None:
    first, second = generate_nonce(), generate_nonce()

    assert len(first) == NONCE_SIZE
    assert first != second


def test_generate_nonce_wraps_random_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    def unavailable(size: int) -> bytes:
        raise NotImplementedError("no randomness source")

    monkeypatch.setattr(aead.os, "urandom", unavailable)

    with pytest.raises(RandomSourceError):
        generate_nonce()
