"""Tests for the envelope record and typed value conversion."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

import msgpack
import pytest

from sealed_cookie.envelope import MAX_DEPTH, NO_EXPIRY, Envelope, deserialize, serialize
from sealed_cookie.errors import DeserializationError, SerializationError


class Level(Enum):
    INFO = "info"
    ERROR = "error"


@dataclass
class Address:
    city: str
    zip_code: str = ""


@dataclass
class Account:
    id: int
    level: Level
    address: Address
    tags: tuple[str, ...] = ()
    scores: dict[str, float] = field(default_factory=dict)
    nickname: Optional[str] = None
    mode: Literal["light", "dark"] = "light"


def test_envelope_expiry_checks() -> None:
    assert Envelope(value=1).is_expired(10**12) is False
    assert Envelope(value=1, expires=100).is_expired(100.5) is False
    assert Envelope(value=1, expires=100).is_expired(101) is True


def test_record_has_value_then_expiry_fields() -> None:
    record = msgpack.unpackb(serialize(Envelope(value="hi", expires=1700000000)), raw=False)

    assert list(record.items()) == [("V", "hi"), ("E", 1700000000)]


def test_missing_expiry_uses_sentinel_on_wire() -> None:
    record = msgpack.unpackb(serialize(Envelope(value="hi")), raw=False)

    assert record["E"] == NO_EXPIRY
    assert deserialize(serialize(Envelope(value="hi"))).expires is None


def test_nested_dataclasses_round_trip() -> None:
    account = Account(
        id=42,
        level=Level.ERROR,
        address=Address(city="Lisbon"),
        tags=("a", "b"),
        scores={"x": 1.0},
        mode="dark",
    )

    envelope = deserialize(serialize(Envelope(value=account, expires=5)), Account)

    assert envelope == Envelope(value=account, expires=5)


def test_dataclass_written_as_field_map() -> None:
    record = msgpack.unpackb(serialize(Envelope(value=Address(city="Oslo"))), raw=False)

    assert record["V"] == {"city": "Oslo", "zip_code": ""}


def test_aware_datetime_round_trips() -> None:
    stamp = datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)

    assert deserialize(serialize(Envelope(value=stamp)), datetime).value == stamp


def test_sets_and_bytes_like_values() -> None:
    value = {"ids": {1, 2}, "blob": bytearray(b"xy")}

    envelope = deserialize(serialize(Envelope(value=value)), dict[str, Any])

    assert sorted(envelope.value["ids"]) == [1, 2]
    assert envelope.value["blob"] == b"xy"


def test_missing_optional_fields_use_defaults() -> None:
    data = serialize(Envelope(value={"city": "Rome"}))

    assert deserialize(data, Address).value == Address(city="Rome")


def test_unknown_fields_are_ignored() -> None:
    data = serialize(Envelope(value={"city": "Rome", "country": "IT"}))

    assert deserialize(data, Address).value == Address(city="Rome")


@pytest.mark.parametrize(
    "value",
    [
        object(),
        lambda: None,
        datetime(2024, 1, 1),
        2**64,
        {(1, 2): "tuple key"},
    ],
)
def test_unsupported_values_raise_serialization_error(value: Any) -> None:
    with pytest.raises(SerializationError):
        serialize(Envelope(value=value))


def test_cyclic_reference_raises_serialization_error() -> None:
    loop: list[Any] = []
    loop.append(loop)

    with pytest.raises(SerializationError):
        serialize(Envelope(value=loop))


def test_deeply_nested_value_raises_serialization_error() -> None:
    value: list[Any] = []
    for _ in range(5000):
        value = [value]

    with pytest.raises(SerializationError, match="nested deeper"):
        serialize(Envelope(value=value))


def test_nesting_up_to_limit_is_accepted() -> None:
    value: list[Any] = []
    for _ in range(MAX_DEPTH - 1):
        value = [value]

    assert msgpack.unpackb(serialize(Envelope(value=value)), raw=False)["E"] == NO_EXPIRY


def test_keys_colliding_after_conversion_raise_serialization_error() -> None:
    with pytest.raises(SerializationError, match="Duplicate key"):
        serialize(Envelope(value={Level.INFO: 1, "info": 2}))


def test_shared_references_are_not_cycles() -> None:
    shared = [1, 2]

    envelope = deserialize(serialize(Envelope(value=[shared, shared])))

    assert envelope.value == [[1, 2], [1, 2]]


@pytest.mark.parametrize(
    "payload",
    [
        b"",
        b"\xc1",
        msgpack.packb({"V": 1}),
        msgpack.packb({"V": 1, "E": "soon"}),
        msgpack.packb({"V": 1, "E": True}),
        msgpack.packb({"V": 1, "E": -1, "X": 0}),
        msgpack.packb([1, -1]),
    ],
)
def test_malformed_records_raise_deserialization_error(payload: bytes) -> None:
    with pytest.raises(DeserializationError):
        deserialize(payload)


@pytest.mark.parametrize(
    "value, value_type",
    [
        ("42", int),
        (1, str),
        (1, bool),
        (True, int),
        ("x", float),
        ({"city": 3}, Address),
        ({"zip_code": "1"}, Address),
        ([1, "two"], list[int]),
        ([1, 2, 3], tuple[int, int]),
        ("warning", Level),
        ("sepia", Literal["light", "dark"]),
        ([1], dict[str, int]),
    ],
)
def test_type_mismatch_raises_deserialization_error(value: Any, value_type: Any) -> None:
    data = serialize(Envelope(value=value))

    with pytest.raises(DeserializationError):
        deserialize(data, value_type)


def test_errors_do_not_echo_payload() -> None:
    data = serialize(Envelope(value={"city": "top-secret-city-name", "zip_code": 5}))

    with pytest.raises(DeserializationError) as excinfo:
        deserialize(data, Address)

    assert "top-secret" not in str(excinfo.value)
    assert "value.zip_code" in str(excinfo.value)


def test_integers_widen_to_float() -> None:
    assert deserialize(serialize(Envelope(value=3)), float).value == 3.0
