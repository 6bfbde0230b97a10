"""Envelope model and its compact msgpack wire record.

An :class:`Envelope` binds a caller value to an optional absolute expiry
instant.  On the wire it is a msgpack map holding exactly two fields, ``V``
(the value) followed by ``E`` (Unix seconds, or ``-1`` when the envelope
never expires).  Dataclasses are written as maps of field name to value so
that structured values keep the same shape other implementations expect.

Decoding is driven by the type the caller asks for: the raw msgpack data is
checked against that type and converted field by field, so a string on the
wire never silently becomes an integer.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import types
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Literal, TypeVar, Union, get_args, get_origin, get_type_hints

import msgpack

from .errors import DeserializationError, SerializationError

V = TypeVar("V")

NO_EXPIRY = -1
VALUE_FIELD = "V"
EXPIRY_FIELD = "E"

_SCALARS = (bool, int, float, str, bytes)
_SEQUENCE_ORIGINS = (list, collections.abc.Sequence, collections.abc.MutableSequence)
_SET_ORIGINS = (set, frozenset, collections.abc.Set, collections.abc.MutableSet)
_MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)

# Well inside both msgpack's nesting limit and the interpreter's recursion limit.
MAX_DEPTH = 256


@dataclass(frozen=True)
class Envelope(Generic[V]):
    """A value together with the absolute instant after which it expires."""

    value: V
    expires: int | None = None

    def is_expired(self, now: float) -> bool:
        """Return ``True`` when *now* (Unix seconds) is past :attr:`expires`."""

        if self.expires is None:
            return False
        return int(now) > self.expires


def _to_wire(value: Any, path: str, active: set[int], depth: int = 0) -> Any:
    if isinstance(value, Enum):
        return _to_wire(value.value, path, active, depth)
    if value is None or isinstance(value, _SCALARS):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise SerializationError(f"Naive datetime at {path}; attach a timezone")
        return value

    is_record = dataclasses.is_dataclass(value) and not isinstance(value, type)
    if not (is_record or isinstance(value, (collections.abc.Mapping, list, tuple, set, frozenset))):
        raise SerializationError(f"Unsupported type {type(value).__name__} at {path}")

    if depth >= MAX_DEPTH:
        raise SerializationError(f"Value nested deeper than {MAX_DEPTH} levels at {path}")

    marker = id(value)
    if marker in active:
        raise SerializationError(f"Cyclic reference at {path}")
    active.add(marker)
    try:
        if is_record:
            return {
                field.name: _to_wire(getattr(value, field.name), f"{path}.{field.name}", active, depth + 1)
                for field in dataclasses.fields(value)
            }
        if isinstance(value, collections.abc.Mapping):
            converted = {}
            for key, item in value.items():
                wire_key = _to_wire(key, f"{path}[key]", active, depth + 1)
                if wire_key is not None and not isinstance(wire_key, _SCALARS):
                    raise SerializationError(
                        f"Unsupported key type {type(key).__name__} at {path}"
                    )
                if wire_key in converted:
                    raise SerializationError(f"Duplicate key after conversion at {path}")
                converted[wire_key] = _to_wire(item, f"{path}[{wire_key!r}]", active, depth + 1)
            return converted
        return [_to_wire(item, f"{path}[{index}]", active, depth + 1) for index, item in enumerate(value)]
    finally:
        active.discard(marker)


def serialize(envelope: Envelope[Any]) -> bytes:
    """Pack *envelope* into its two-field msgpack record."""

    wire_value = _to_wire(envelope.value, "value", set())
    expires = NO_EXPIRY if envelope.expires is None else envelope.expires
    try:
        return msgpack.packb(
            {VALUE_FIELD: wire_value, EXPIRY_FIELD: expires},
            use_bin_type=True,
            datetime=True,
        )
    except (OverflowError, TypeError, ValueError) as exc:
        raise SerializationError(f"Failed to serialize value: {exc}") from exc


def _type_name(target: Any) -> str:
    return getattr(target, "__name__", None) or repr(target)


def _mismatch(path: str, target: Any, data: Any) -> DeserializationError:
    return DeserializationError(
        f"Expected {_type_name(target)} at {path}, got {type(data).__name__}"
    )


def _to_dataclass(data: Any, target: type, path: str) -> Any:
    if not isinstance(data, dict):
        raise _mismatch(path, target, data)
    try:
        hints = get_type_hints(target)
    except (NameError, TypeError) as exc:
        raise DeserializationError(f"Cannot resolve field types of {target.__name__}") from exc

    kwargs = {}
    for field in dataclasses.fields(target):
        if not field.init:
            continue
        if field.name in data:
            kwargs[field.name] = _from_wire(
                data[field.name], hints.get(field.name, Any), f"{path}.{field.name}"
            )
        elif field.default is dataclasses.MISSING and field.default_factory is dataclasses.MISSING:
            raise DeserializationError(f"Missing field {path}.{field.name}")
    try:
        return target(**kwargs)
    except (TypeError, ValueError) as exc:
        raise DeserializationError(f"Failed to build {target.__name__} at {path}") from exc


def _from_generic(data: Any, origin: Any, args: tuple[Any, ...], path: str) -> Any:
    if origin is Literal:
        if any(data == option and type(data) is type(option) for option in args):
            return data
        raise DeserializationError(f"Unexpected literal value at {path}")

    if origin in _MAPPING_ORIGINS:
        if not isinstance(data, dict):
            raise _mismatch(path, dict, data)
        key_type, item_type = args if len(args) == 2 else (Any, Any)
        return {
            _from_wire(key, key_type, f"{path}[key]"): _from_wire(item, item_type, f"{path}[{key!r}]")
            for key, item in data.items()
        }

    if not isinstance(data, list):
        raise _mismatch(path, origin, data)

    if origin is tuple:
        if not args:
            return tuple(data)
        if len(args) == 2 and args[1] is Ellipsis:
            return tuple(
                _from_wire(item, args[0], f"{path}[{index}]") for index, item in enumerate(data)
            )
        if len(args) != len(data):
            raise DeserializationError(
                f"Expected {len(args)} items at {path}, got {len(data)}"
            )
        return tuple(
            _from_wire(item, arg, f"{path}[{index}]")
            for index, (item, arg) in enumerate(zip(data, args))
        )

    item_type = args[0] if args else Any
    items = [_from_wire(item, item_type, f"{path}[{index}]") for index, item in enumerate(data)]
    if origin in _SEQUENCE_ORIGINS:
        return items
    if origin in _SET_ORIGINS:
        try:
            return frozenset(items) if origin is frozenset else set(items)
        except TypeError as exc:
            raise DeserializationError(f"Unhashable set member at {path}") from exc
    raise DeserializationError(f"Unsupported target type {_type_name(origin)} at {path}")


def _from_wire(data: Any, target: Any, path: str) -> Any:
    if target is Any or target is object:
        return data
    if target is None or target is type(None):
        if data is not None:
            raise _mismatch(path, type(None), data)
        return None

    origin = get_origin(target)
    if origin is Union or origin is types.UnionType:
        arms = get_args(target)
        if data is None and type(None) in arms:
            return None
        for arm in arms:
            if arm is type(None):
                continue
            try:
                return _from_wire(data, arm, path)
            except DeserializationError:
                continue
        raise _mismatch(path, target, data)
    if origin is not None:
        return _from_generic(data, origin, get_args(target), path)

    if not isinstance(target, type):
        raise DeserializationError(f"Unsupported target type {target!r} at {path}")
    if dataclasses.is_dataclass(target):
        return _to_dataclass(data, target, path)
    if issubclass(target, Enum):
        try:
            return target(data)
        except (TypeError, ValueError) as exc:
            raise DeserializationError(f"Invalid {target.__name__} value at {path}") from exc
    if target is bool:
        if isinstance(data, bool):
            return data
        raise _mismatch(path, target, data)
    if target is int:
        if isinstance(data, int) and not isinstance(data, bool):
            return data
        raise _mismatch(path, target, data)
    if target is float:
        if isinstance(data, (int, float)) and not isinstance(data, bool):
            return float(data)
        raise _mismatch(path, target, data)
    if target in (str, bytes, datetime):
        if isinstance(data, target):
            return data
        raise _mismatch(path, target, data)
    if target in (list, tuple, set, frozenset, dict):
        return _from_generic(data, target, (), path)
    raise DeserializationError(f"Unsupported target type {target.__name__} at {path}")


def deserialize(data: bytes, value_type: Any = Any) -> Envelope[Any]:
    """Unpack an envelope record and convert its value into *value_type*."""

    try:
        record = msgpack.unpackb(data, raw=False, timestamp=3, strict_map_key=False)
    except (msgpack.UnpackException, ValueError, TypeError, OverflowError) as exc:
        raise DeserializationError("Failed to unpack envelope record") from exc

    if not isinstance(record, dict) or set(record) != {VALUE_FIELD, EXPIRY_FIELD}:
        raise DeserializationError("Envelope record must hold exactly the V and E fields")
    expires = record[EXPIRY_FIELD]
    if isinstance(expires, bool) or not isinstance(expires, int):
        raise DeserializationError("Envelope expiry must be an integer")

    value = _from_wire(record[VALUE_FIELD], value_type, "value")
    return Envelope(value=value, expires=None if expires == NO_EXPIRY else expires)
